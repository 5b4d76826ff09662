from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from cardrelay.core.base import Terminal, handles
from cardrelay.core.detect import DetectionEngine, EngineOptions
from cardrelay.core.dispatch import Dispatcher
from cardrelay.core.eventlog import EventLog
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

lg = logging.getLogger(__name__)

# push topics
STATE = "state"
LOG = "log"
DISPATCH = "dispatch"

# read only when a new session is built
_SESSION_KEYS = {"broker_url", "call_timeout"}


class SettingsStore(Protocol):
    def as_dict(self) -> dict[str, Any]: ...
    def update(self, changes: dict[str, Any]) -> Any: ...
    def engine_options(self) -> EngineOptions: ...


class MonitorTerminal(Terminal):
    """Command surface over a running detection engine.

    Owns nothing itself: state lives in the engine, records in the
    dispatcher, history in the event log, configuration in the store.
    """

    def __init__(
        self,
        engine: DetectionEngine,
        dispatcher: Dispatcher,
        log: EventLog,
        settings: SettingsStore,
    ) -> None:
        self._engine = engine
        self._dispatcher = dispatcher
        self._log = log
        self._settings = settings

    def subscribe(self, listener: Callable[[str, Any], None]) -> Callable[[], None]:
        """Push state, log and dispatch changes to ``listener(topic, payload)``."""
        unsubscribers = [
            self._engine.subscribe(lambda snap: listener(STATE, snap)),
            self._log.subscribe(lambda entry: listener(LOG, entry)),
            self._dispatcher.subscribe(lambda: listener(DISPATCH, self._dispatcher.last_response)),
        ]

        def unsubscribe() -> None:
            for fn in unsubscribers:
                fn()

        return unsubscribe

    @handles(GetStateMessage)
    async def _get_state(self, message: GetStateMessage) -> StateResult:
        return StateResult(
            snapshot=self._engine.snapshot,
            settings=self._settings.as_dict(),
            log=self._log.entries,
            request=self._dispatcher.last_request,
            response=self._dispatcher.last_response,
        )

    @handles(ResendMessage)
    async def _resend(self, message: ResendMessage) -> ResendResult:
        response = await self._dispatcher.resend(message.url, message.body)
        return ResendResult(
            sent=response is not None,
            request=self._dispatcher.last_request,
            response=response,
        )

    @handles(ClearLogMessage)
    async def _clear_log(self, message: ClearLogMessage) -> ClearLogResult:
        count = len(self._log)
        self._log.clear()
        return ClearLogResult(cleared=count)

    @handles(UpdateSettingsMessage)
    async def _update_settings(self, message: UpdateSettingsMessage) -> UpdateSettingsResult:
        self._settings.update(message.changes)
        lg.info("settings changed: %s", ", ".join(sorted(message.changes)))
        restarted = await self._engine.reconfigure(self._settings.engine_options())
        if not restarted and message.changes.keys() & _SESSION_KEYS:
            await self._engine.restart("broker settings changed")
            restarted = True
        return UpdateSettingsResult(settings=self._settings.as_dict(), restarted=restarted)

    @handles(RestartMessage)
    async def _restart(self, message: RestartMessage) -> RestartResult:
        await self._engine.restart(message.reason)
        return RestartResult(snapshot=self._engine.snapshot)
