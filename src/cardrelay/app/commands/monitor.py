"""Operator commands against the running monitor."""

from __future__ import annotations

import json
import logging
from dataclasses import fields

from cardrelay.app.display import (
    format_log,
    format_request,
    format_response,
    format_settings,
    format_snapshot,
)
from cardrelay.app.settings import Settings
from cardrelay.core.errors import ConfigError
from cardrelay.core.monitor import (
    ClearLogMessage,
    GetStateMessage,
    ResendMessage,
    RestartMessage,
    UpdateSettingsMessage,
)

lg = logging.getLogger(__name__)


async def cmd_state(runner) -> bool:
    """Show detection state, settings and the last dispatch."""
    result = await runner._terminal.send(GetStateMessage())
    sections = [
        f"--- Detection ---\n{format_snapshot(result.snapshot)}",
        f"--- Settings ---\n{format_settings(result.settings)}",
    ]
    if result.request is not None:
        sections.append(f"--- Last request ---\n{format_request(result.request)}")
    if result.response is not None:
        sections.append(f"--- Last response ---\n{format_response(result.response)}")
    runner.echo("\n\n".join(sections))
    return True


async def cmd_log(runner) -> bool:
    """Show the event log (oldest first)."""
    result = await runner._terminal.send(GetStateMessage())
    runner.echo(f"--- Event log ({len(result.log)}) ---\n{format_log(result.log)}")
    return True


async def cmd_clear_log(runner) -> bool:
    """Clear the event log."""
    result = await runner._terminal.send(ClearLogMessage())
    runner.echo(f"cleared {result.cleared} entries")
    return True


async def cmd_resend(runner, *, url: str = "", body: str = "") -> bool:
    """Resend the last notification, optionally with url= and/or body=JSON."""
    payload = None
    if body:
        try:
            payload = json.loads(body)
        except ValueError as exc:
            lg.error("body is not valid JSON: %s", exc)
            return False
    result = await runner._terminal.send(ResendMessage(url=url or None, body=payload))
    if not result.sent:
        return False
    runner.echo(f"{format_request(result.request)}\n{format_response(result.response)}")
    return result.response.ok


async def cmd_restart(runner) -> bool:
    """Restart detection (cancel wait, drop session, reconnect)."""
    result = await runner._terminal.send(RestartMessage())
    runner.echo(format_snapshot(result.snapshot))
    return True


async def _apply_settings(runner, changes: dict[str, str]) -> bool:
    try:
        result = await runner._terminal.send(UpdateSettingsMessage(changes=changes))
    except ConfigError as exc:
        lg.error("%s", exc)
        return False
    if result.restarted:
        lg.info("detection restarted")
    return True


# 'set' keys forwarded to the monitor in one batch
_setting_names: list[str] = [f.name for f in fields(Settings)]
_settings_sink = _apply_settings
