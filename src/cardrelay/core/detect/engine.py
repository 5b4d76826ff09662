from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import replace

from cardrelay.core.detect.state import (
    MODE_EVENT,
    NO_CARD,
    AsyncioClock,
    Clock,
    DetectionState,
    EngineOptions,
    Snapshot,
)
from cardrelay.core.detect.strategies import EventStrategy, PollStrategy
from cardrelay.core.dispatch import Dispatcher
from cardrelay.core.errors import CardReadError, ProtocolError, TransportError
from cardrelay.core.eventlog import utc_now
from cardrelay.core.pcsc.session import PcscSession
from cardrelay.core.smartcard import CardHandle, parse_atr, to_hex

lg = logging.getLogger(__name__)

_BUSY_STATES = (
    DetectionState.INITIALIZING,
    DetectionState.CONNECTING,
    DetectionState.FAULTED,
)


class DetectionEngine:
    """Owns the broker session and drives the detection state machine.

    ``step()`` advances the machine by one transition and returns how
    long the driver should wait before the next one; ``run()`` is that
    driver. ``restart()`` tears the session down completely (cancel the
    outstanding wait, release, close) before a new one is built, so two
    sessions never coexist.
    """

    def __init__(
        self,
        session_factory: Callable[[], PcscSession],
        dispatcher: Dispatcher,
        options: EngineOptions,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._options = options
        self._clock = clock or AsyncioClock()
        self._session: PcscSession | None = None
        self._snapshot = Snapshot(mode=options.mode, updated_at=utc_now())
        self._listeners: list[Callable[[Snapshot], None]] = []
        self._strategy = self._make_strategy()
        self._running = False
        self._restarting = False
        self._task: asyncio.Task | None = None

    # -- observation --

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def session(self) -> PcscSession | None:
        return self._session

    @property
    def options(self) -> EngineOptions:
        return self._options

    @property
    def strategy(self) -> EventStrategy | PollStrategy:
        return self._strategy

    @property
    def running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    def subscribe(self, listener: Callable[[Snapshot], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def update(self, **changes) -> Snapshot:
        """Apply a change to the snapshot and broadcast it if anything moved."""
        current = self._snapshot
        if all(getattr(current, key) == value for key, value in changes.items()):
            return current
        new = replace(current, updated_at=utc_now(), **changes)
        if new.state is not current.state:
            lg.debug("state %s -> %s", current.state.value, new.state.value)
        self._snapshot = new
        for listener in list(self._listeners):
            try:
                listener(new)
            except Exception:
                lg.debug("snapshot listener failed", exc_info=True)
        return new

    # -- state machine --

    def _make_strategy(self) -> EventStrategy | PollStrategy:
        if self._options.mode == MODE_EVENT:
            return EventStrategy(self)
        return PollStrategy(self)

    async def step(self) -> float:
        state = self._snapshot.state
        if state in (DetectionState.INITIALIZING, DetectionState.CONNECTING):
            return await self._connect()
        if state is DetectionState.FAULTED:
            await self._dispose_session()
            self.update(state=DetectionState.CONNECTING)
            return 0
        try:
            return await self._strategy.step()
        except (TransportError, ProtocolError) as exc:
            return self._fault(f"{self._options.mode} detection failed: {exc}")

    async def _connect(self) -> float:
        self.update(state=DetectionState.CONNECTING)
        await self._dispose_session()
        session = self._session_factory()
        self._session = session
        try:
            await session.open()
            await session.establish_context()
        except (TransportError, ProtocolError) as exc:
            return self._fault(f"cannot connect to broker: {exc}")
        self._strategy.reset()
        lg.info("connected to broker, %s mode", self._options.mode)
        self.update(state=DetectionState.IDLE, error=None)
        return 0

    def _fault(self, message: str) -> float:
        lg.error("%s", message)
        self.update(state=DetectionState.FAULTED, error=message)
        return self._options.recovery_delay

    async def _dispose_session(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await self._strategy.release(session)
        except TransportError as exc:
            lg.debug("release card on dispose: %s", exc)
        self._strategy.reset()
        await session.close()

    async def read_card(self, card: CardHandle, reader: str) -> None:
        """Read UID and ATR from a connected card, publish, then dispatch."""
        session = self._session
        uid: str | None = None
        atr = b""
        failures: list[CardReadError] = []
        try:
            uid = await session.read_card_uid(card)
        except ProtocolError as exc:
            failures.append(CardReadError(f"UID read failed: {exc}"))
        try:
            atr = (await session.status(card.handle)).atr
        except ProtocolError as exc:
            failures.append(CardReadError(f"ATR read failed: {exc}"))
        for failure in failures:
            lg.warning("%s", failure)

        info = parse_atr(atr) if atr else None
        self.update(
            state=DetectionState.CARD_PRESENT,
            reader_name=reader,
            card_uid=uid,
            card_atr=to_hex(atr) or None,
            card_info=info,
            error="; ".join(str(f) for f in failures) or None,
        )
        lg.info(
            "card %s on %s", uid or "without UID", reader,
            extra={"detail": {"uid": uid, "atr": to_hex(atr) or None}},
        )
        if uid:
            await self._dispatcher.notify(uid, info)

    # -- driver --

    async def run(self) -> None:
        while self._running:
            delay = await self.step()
            if self._running:
                await self._clock.sleep(delay)

    def _task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            lg.error("detection loop crashed: %r", exc, exc_info=exc)
            self._running = False

    async def start(self) -> None:
        if self.running:
            return
        self._running = True
        self.update(state=DetectionState.CONNECTING, error=None)
        self._task = asyncio.create_task(self.run(), name="detection-engine")
        self._task.add_done_callback(self._task_done)

    async def stop(self) -> None:
        """Cancel any outstanding wait, stop the driver and dispose the session."""
        self._running = False
        session = self._session
        if session is not None and session.connected:
            try:
                await session.cancel()
            except TransportError as exc:
                lg.debug("cancel on stop: %s", exc)
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._dispose_session()

    async def restart(self, reason: str) -> None:
        if self._restarting:
            lg.debug("restart already in progress, ignoring: %s", reason)
            return
        self._restarting = True
        try:
            lg.info("restarting detection: %s", reason)
            await self.stop()
            await self._clock.sleep(self._options.restart_settle)
            self._strategy = self._make_strategy()
            self.update(
                state=DetectionState.CONNECTING,
                mode=self._options.mode,
                reader_name=None,
                error=None,
                **NO_CARD,
            )
            await self.start()
        finally:
            self._restarting = False

    async def reconfigure(self, options: EngineOptions) -> bool:
        """Apply new options; returns True if that required a restart."""
        previous, self._options = self._options, options
        if options.mode != previous.mode:
            await self.restart(f"detection mode changed to {options.mode}")
            return True
        if options.hold_card != previous.hold_card and options.mode != MODE_EVENT:
            await self.restart("card handle policy changed")
            return True
        return False

    async def health_check(self) -> bool:
        """Restart the engine if it is not running or lost its session."""
        if self._restarting:
            return False
        if not self.running:
            await self.restart("engine not running")
            return True
        if self._snapshot.state in _BUSY_STATES:
            return False
        if self._session is None or not self._session.connected:
            await self.restart("broker session lost")
            return True
        return False
