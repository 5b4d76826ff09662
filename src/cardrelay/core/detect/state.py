from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Protocol

from cardrelay.core.smartcard import AtrInfo

MODE_EVENT = "event"
MODE_POLL = "poll"
MODES = (MODE_EVENT, MODE_POLL)


class DetectionState(enum.Enum):
    INITIALIZING = "initializing"
    CONNECTING = "connecting"
    IDLE = "idle"
    WATCHING = "watching"
    CARD_PRESENT = "card_present"
    FAULTED = "faulted"


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of the detection engine handed to observers."""

    state: DetectionState = DetectionState.INITIALIZING
    mode: str = MODE_EVENT
    reader_name: str | None = None
    card_uid: str | None = None
    card_atr: str | None = None
    card_info: AtrInfo | None = None
    error: str | None = None
    updated_at: str = ""


NO_CARD = {"card_uid": None, "card_atr": None, "card_info": None}


@dataclass(frozen=True)
class EngineOptions:
    mode: str = MODE_EVENT
    # poll mode: keep the card connected between cycles instead of
    # reconnecting (and blinking the reader LED) every cycle
    hold_card: bool = True
    poll_interval: float = 1.5
    wait_timeout: float = 60.0
    reader_retry: float = 3.0
    recovery_delay: float = 5.0
    restart_settle: float = 0.5

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValueError(f"unknown detection mode: {self.mode!r}")


class Clock(Protocol):
    async def sleep(self, seconds: float) -> None: ...


class AsyncioClock:
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
