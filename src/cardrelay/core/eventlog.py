"""Bounded diagnostic history shared by the engine, session and dispatcher."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

lg = logging.getLogger(__name__)

MAX_ENTRIES = 50

LEVELS = ("info", "warn", "error")


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    message: str
    detail: dict[str, Any] | None = field(default=None, compare=False)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class EventLog:
    """Insertion-ordered ring of the most recent ``maxlen`` entries."""

    def __init__(self, maxlen: int = MAX_ENTRIES) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=maxlen)
        self._listeners: list[Callable[[LogEntry | None], None]] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def subscribe(self, listener: Callable[[LogEntry | None], None]) -> Callable[[], None]:
        """Register a listener; called with each new entry, or None on clear."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def append(self, level: str, message: str, detail: dict[str, Any] | None = None) -> LogEntry:
        if level not in LEVELS:
            raise ValueError(f"unknown log level: {level}")
        entry = LogEntry(timestamp=utc_now(), level=level, message=message, detail=detail)
        self._entries.append(entry)
        self._notify(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()
        self._notify(None)

    def _notify(self, entry: LogEntry | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                lg.debug("event log listener failed", exc_info=True)


class EventLogHandler(logging.Handler):
    """Logging handler that mirrors INFO-and-above records into an EventLog.

    A structured detail mapping can ride along with
    ``lg.info("...", extra={"detail": {...}})``.
    """

    def __init__(self, log: EventLog, level: int = logging.INFO) -> None:
        super().__init__(level)
        self._log = log

    @staticmethod
    def level_name(levelno: int) -> str:
        if levelno >= logging.ERROR:
            return "error"
        if levelno >= logging.WARNING:
            return "warn"
        return "info"

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            detail = getattr(record, "detail", None)
            self._log.append(self.level_name(record.levelno), message, detail)
        except Exception:
            self.handleError(record)
