"""Detection strategies: one state-machine step per call.

EventStrategy blocks in SCardGetStatusChange on the first reader and
reacts to PRESENT transitions. PollStrategy probes the reader on a fixed
cadence, either holding the card handle between cycles (status checks)
or reconnecting every cycle.

Both return the delay before the next step. Transport and unexpected
protocol errors propagate to the engine, which faults and recovers.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cardrelay.core.detect.state import NO_CARD, DetectionState
from cardrelay.core.errors import ProtocolError
from cardrelay.core.pcsc import constants as C
from cardrelay.core.pcsc.session import PcscSession, WaitOutcome
from cardrelay.core.smartcard import CardHandle, ReaderState

if TYPE_CHECKING:
    from cardrelay.core.detect.engine import DetectionEngine

lg = logging.getLogger(__name__)


def pick_reader(readers: list[str]) -> str:
    """Single-reader policy: the first reader reported by the broker."""
    if len(readers) > 1:
        lg.debug("%d readers present, watching %s", len(readers), readers[0])
    return readers[0]


class EventStrategy:
    """Event-driven detection via SCardGetStatusChange."""

    def __init__(self, engine: DetectionEngine) -> None:
        self._engine = engine
        self._reader: str | None = None
        self._current = C.SCARD_STATE_UNAWARE

    def reset(self) -> None:
        self._reader = None
        self._current = C.SCARD_STATE_UNAWARE

    async def release(self, session: PcscSession) -> None:
        # cards are disconnected right after each read
        self.reset()

    async def step(self) -> float:
        engine = self._engine
        session = engine.session
        options = engine.options

        if self._reader is None:
            readers = await session.list_readers()
            if not readers:
                if engine.snapshot.reader_name is not None or engine.snapshot.state is not DetectionState.IDLE:
                    lg.info("no readers found, retrying every %gs", options.reader_retry)
                engine.update(state=DetectionState.IDLE, reader_name=None, **NO_CARD)
                return options.reader_retry
            self._reader = pick_reader(readers)
            self._current = C.SCARD_STATE_UNAWARE
            lg.info("watching reader %s", self._reader)
            engine.update(reader_name=self._reader, error=None)

        if engine.snapshot.state is DetectionState.IDLE:
            engine.update(state=DetectionState.WATCHING)

        change = await session.wait_for_status_change(
            options.wait_timeout, [ReaderState(self._reader, self._current)],
        )
        if change.outcome is WaitOutcome.TIMEOUT:
            return 0
        if change.outcome is WaitOutcome.CANCELLED:
            lg.debug("status wait cancelled")
            self.reset()
            return 0
        if not change.readers:
            return 0

        event_state = change.readers[0].event_state
        if event_state & (C.SCARD_STATE_UNKNOWN | C.SCARD_STATE_UNAVAILABLE):
            lg.warning("reader %s is no longer available", self._reader)
            self.reset()
            engine.update(state=DetectionState.IDLE, reader_name=None, **NO_CARD)
            return 0

        present = bool(event_state & C.SCARD_STATE_PRESENT)
        if present and engine.snapshot.state is not DetectionState.CARD_PRESENT:
            await self._read(session, self._reader)
        elif not present and engine.snapshot.state is DetectionState.CARD_PRESENT:
            lg.info("card removed")
            engine.update(state=DetectionState.IDLE, **NO_CARD)

        self._current = event_state & ~C.SCARD_STATE_CHANGED
        return 0

    async def _read(self, session: PcscSession, reader: str) -> None:
        try:
            card = await session.connect_card(reader)
        except ProtocolError as exc:
            lg.warning("card present but connect failed: %s", exc)
            return
        try:
            await self._engine.read_card(card, reader)
        finally:
            if session.connected:
                await session.disconnect(card.handle)


class PollStrategy:
    """Polling detection via SCardConnect / SCardStatus."""

    def __init__(self, engine: DetectionEngine) -> None:
        self._engine = engine
        self._card: CardHandle | None = None

    @property
    def card(self) -> CardHandle | None:
        return self._card

    def reset(self) -> None:
        self._card = None

    async def release(self, session: PcscSession) -> None:
        card, self._card = self._card, None
        if card is not None:
            await session.disconnect(card.handle)

    async def step(self) -> float:
        engine = self._engine
        session = engine.session
        options = engine.options

        if self._card is not None:
            try:
                await session.status(self._card.handle)
            except ProtocolError as exc:
                lg.info("card removed (%s)", exc.name or exc)
                await self.release(session)
                engine.update(state=DetectionState.IDLE, **NO_CARD)
                return 0
            return options.poll_interval

        readers = await session.list_readers()
        if not readers:
            engine.update(state=DetectionState.IDLE, reader_name=None, **NO_CARD)
            return options.poll_interval
        reader = pick_reader(readers)
        engine.update(reader_name=reader)

        try:
            card = await session.connect_card(reader)
        except ProtocolError:
            # the normal "no card" outcome
            engine.update(state=DetectionState.IDLE, error=None, **NO_CARD)
            return options.poll_interval

        if options.hold_card:
            self._card = card
            await engine.read_card(card, reader)
            return options.poll_interval

        try:
            if engine.snapshot.state is not DetectionState.CARD_PRESENT:
                await engine.read_card(card, reader)
        finally:
            if session.connected:
                await session.disconnect(card.handle)
        return options.poll_interval
