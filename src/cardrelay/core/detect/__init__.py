from cardrelay.core.detect.engine import DetectionEngine
from cardrelay.core.detect.state import (
    MODE_EVENT,
    MODE_POLL,
    MODES,
    DetectionState,
    EngineOptions,
    Snapshot,
)

__all__ = [
    "DetectionEngine",
    "DetectionState",
    "EngineOptions",
    "MODE_EVENT",
    "MODE_POLL",
    "MODES",
    "Snapshot",
]
