"""Human-readable formatting of engine state, log and dispatch records."""

from __future__ import annotations

import json
from typing import Any

from cardrelay.core.detect import Snapshot
from cardrelay.core.dispatch import RequestRecord, ResponseRecord
from cardrelay.core.eventlog import LogEntry
from cardrelay.core.smartcard import AtrInfo

_LEVEL_TAGS = {"info": "INFO ", "warn": "WARN ", "error": "ERROR"}


def _rows(fields: list[tuple[str, Any]]) -> str:
    fields = [(label, value) for label, value in fields if value not in (None, "")]
    if not fields:
        return ""
    w = max(len(label) for label, _ in fields)
    return "\n".join(f"  {label:<{w}}  {value}" for label, value in fields)


def _json(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, sort_keys=True)


def format_atr_info(info: AtrInfo) -> str:
    return _rows([
        ("ATR", info.atr_hex),
        ("Historical", info.historical_bytes),
        ("Card", info.card_name),
        ("Standard", info.standard),
        ("Type", info.card_type),
        ("RID", info.rid),
    ])


def format_snapshot(snap: Snapshot) -> str:
    lines = _rows([
        ("State", snap.state.value),
        ("Mode", snap.mode),
        ("Reader", snap.reader_name or "(none)"),
        ("UID", snap.card_uid),
        ("Error", snap.error),
        ("Updated", snap.updated_at),
    ])
    if snap.card_info is not None:
        lines += "\n" + format_atr_info(snap.card_info)
    elif snap.card_atr:
        lines += f"\n  ATR  {snap.card_atr}"
    return lines


def format_settings(settings: dict[str, Any]) -> str:
    return _rows(sorted(settings.items()))


def format_log_entry(entry: LogEntry) -> str:
    line = f"{entry.timestamp}  {_LEVEL_TAGS.get(entry.level, entry.level)}  {entry.message}"
    if entry.detail:
        line += f"  {json.dumps(entry.detail, sort_keys=True, default=str)}"
    return line


def format_log(entries: list[LogEntry]) -> str:
    if not entries:
        return "  (empty)"
    return "\n".join(f"  {format_log_entry(e)}" for e in entries)


def format_request(record: RequestRecord) -> str:
    return f"  POST {record.url}  at {record.timestamp}\n{_indent(_json(record.body))}"


def format_response(record: ResponseRecord) -> str:
    if record.error is not None:
        return f"  error after {record.duration_ms:.0f} ms: {record.error}"
    head = f"  {record.status} in {record.duration_ms:.0f} ms  at {record.timestamp}"
    if record.body in (None, ""):
        return head
    return f"{head}\n{_indent(_json(record.body))}"


def _indent(text: str, prefix: str = "    ") -> str:
    return "\n".join(prefix + line for line in text.splitlines())
