from cardrelay.core.monitor.messages import (
    ClearLogMessage,
    ClearLogResult,
    GetStateMessage,
    ResendMessage,
    ResendResult,
    RestartMessage,
    RestartResult,
    StateResult,
    UpdateSettingsMessage,
    UpdateSettingsResult,
)
from cardrelay.core.monitor.terminal import MonitorTerminal, SettingsStore

__all__ = [
    "ClearLogMessage",
    "ClearLogResult",
    "GetStateMessage",
    "MonitorTerminal",
    "ResendMessage",
    "ResendResult",
    "RestartMessage",
    "RestartResult",
    "SettingsStore",
    "StateResult",
    "UpdateSettingsMessage",
    "UpdateSettingsResult",
]
