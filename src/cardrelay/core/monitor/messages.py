from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cardrelay.core.base import Message, Result
from cardrelay.core.detect import Snapshot
from cardrelay.core.dispatch import RequestRecord, ResponseRecord
from cardrelay.core.eventlog import LogEntry


@dataclass
class GetStateMessage(Message):
    """Request the detection snapshot together with settings, log and last dispatch."""


@dataclass
class StateResult(Result):
    snapshot: Snapshot
    settings: dict[str, Any]
    log: list[LogEntry]
    request: RequestRecord | None = None
    response: ResponseRecord | None = None


@dataclass
class ResendMessage(Message):
    """Replay the last notification, optionally overriding url and/or body."""

    url: str | None = None
    body: Any = None


@dataclass
class ResendResult(Result):
    sent: bool
    request: RequestRecord | None = None
    response: ResponseRecord | None = None


@dataclass
class ClearLogMessage(Message):
    pass


@dataclass
class ClearLogResult(Result):
    cleared: int


@dataclass
class UpdateSettingsMessage(Message):
    """Change one or more settings; a mode change restarts detection."""

    changes: dict[str, Any] = field(default_factory=dict)


@dataclass
class UpdateSettingsResult(Result):
    settings: dict[str, Any]
    restarted: bool


@dataclass
class RestartMessage(Message):
    reason: str = "operator request"


@dataclass
class RestartResult(Result):
    snapshot: Snapshot
