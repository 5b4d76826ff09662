from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field

from cardrelay.core.errors import ProtocolError, TransportError
from cardrelay.core.pcsc import constants as C
from cardrelay.core.pcsc.channel import Channel
from cardrelay.core.smartcard import (
    APDU,
    GET_UID,
    CardHandle,
    CardStatus,
    ReaderState,
    Response,
    to_hex,
)
from cardrelay.core.smartcard.logging import PROTOCOL, colored

lg = logging.getLogger(__name__)


class WaitOutcome(enum.Enum):
    CHANGED = "changed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class StatusChange:
    """Result of one SCardGetStatusChange round."""

    outcome: WaitOutcome
    readers: list[ReaderState] = field(default_factory=list)


class PcscSession:
    """PC/SC resource-manager operations over a broker channel.

    Every broker result tuple is decoded here: slot 0 is the status
    code, the rest is the payload. A non-zero status raises
    ProtocolError (NoCardPresent for the no-card family). Teardown
    calls swallow broker errors so they are safe to repeat.
    """

    def __init__(self, channel: Channel) -> None:
        self._channel = channel
        self._context: int | None = None

    @property
    def context(self) -> int | None:
        return self._context

    @property
    def connected(self) -> bool:
        return self._channel.connected and self._context is not None

    async def open(self) -> None:
        await self._channel.open()

    async def _call(self, function_name: str, arguments: list, *, timeout: float | None = None) -> list:
        result = await self._channel.call(function_name, arguments, timeout=timeout)
        code = int(result[0]) & 0xFFFFFFFF
        lg.log(PROTOCOL, "%s %s", function_name, colored(f"{code:08X}", code == C.SCARD_S_SUCCESS))
        if code != C.SCARD_S_SUCCESS:
            raise ProtocolError.from_code(code, function_name)
        return result[1:]

    def _require_context(self) -> int:
        if self._context is None:
            raise RuntimeError("no resource-manager context established")
        return self._context

    # -- context --

    async def establish_context(self) -> int:
        if self._context is None:
            result = await self._call("SCardEstablishContext", [C.SCARD_SCOPE_SYSTEM, None, None])
            self._context = result[0]
            lg.debug("context %s established", self._context)
        return self._context

    async def release_context(self) -> None:
        if self._context is None:
            return
        context, self._context = self._context, None
        try:
            await self._call("SCardReleaseContext", [context])
        except ProtocolError as exc:
            lg.debug("release context: %s", exc)

    # -- readers and cards --

    async def list_readers(self) -> list[str]:
        context = self._require_context()
        try:
            result = await self._call("SCardListReaders", [context, None])
        except ProtocolError as exc:
            if exc.code == C.SCARD_E_NO_READERS_AVAILABLE:
                return []
            raise
        return list(result[0] or [])

    async def connect_card(self, reader: str) -> CardHandle:
        context = self._require_context()
        result = await self._call(
            "SCardConnect",
            [context, reader, C.SCARD_SHARE_SHARED, C.SCARD_PROTOCOL_ANY],
        )
        return CardHandle(handle=result[0], protocol=result[1])

    async def disconnect(self, handle: int) -> None:
        try:
            await self._call("SCardDisconnect", [handle, C.SCARD_LEAVE_CARD])
        except ProtocolError as exc:
            lg.debug("disconnect %s: %s", handle, exc)

    async def transmit(self, handle: int, protocol: int, apdu: APDU | bytes) -> bytes:
        """Send an APDU; returns the raw response including SW1 SW2."""
        command = apdu.to_list() if isinstance(apdu, APDU) else list(apdu)
        proto = C.SCARD_PROTOCOL_T0 if protocol == C.SCARD_PROTOCOL_T0 else C.SCARD_PROTOCOL_T1
        result = await self._call("SCardTransmit", [handle, {"protocol": proto}, command, None])
        # result[0] is the receive PCI
        return bytes(result[1] or b"")

    async def status(self, handle: int) -> CardStatus:
        result = await self._call("SCardStatus", [handle])
        return CardStatus(
            reader_name=result[0],
            state=result[1],
            protocol=result[2],
            atr=bytes(result[3] or b""),
        )

    async def read_card_uid(self, card: CardHandle) -> str | None:
        """Read the card identifier via GET DATA; None if the card refuses."""
        raw = await self.transmit(card.handle, card.protocol, GET_UID)
        resp = Response.from_bytes(raw)
        if resp is None or not resp.success:
            lg.debug("UID not available: %r", resp)
            return None
        return to_hex(resp.data) or None

    # -- status change --

    async def wait_for_status_change(
        self, timeout: float, reader_states: list[ReaderState],
    ) -> StatusChange:
        """Block up to ``timeout`` seconds for a state change on any reader."""
        context = self._require_context()
        wire_timeout = int(timeout * 1000)
        try:
            result = await self._call(
                "SCardGetStatusChange",
                [context, wire_timeout, [rs.to_wire() for rs in reader_states]],
                timeout=timeout + self._channel.call_timeout,
            )
        except ProtocolError as exc:
            if exc.code == C.SCARD_E_TIMEOUT:
                return StatusChange(WaitOutcome.TIMEOUT, list(reader_states))
            if exc.code == C.SCARD_E_CANCELLED:
                return StatusChange(WaitOutcome.CANCELLED, list(reader_states))
            raise
        readers = [ReaderState.from_wire(item) for item in result[0] or []]
        return StatusChange(WaitOutcome.CHANGED, readers)

    async def cancel(self) -> None:
        """Unblock an outstanding wait_for_status_change."""
        if self._context is None:
            return
        try:
            await self._call("SCardCancel", [self._context])
        except ProtocolError as exc:
            lg.debug("cancel: %s", exc)

    async def close(self) -> None:
        """Release the context (if the channel still allows it) and close."""
        if self._channel.connected:
            try:
                await self.release_context()
            except TransportError as exc:
                lg.debug("release context on close: %s", exc)
        self._context = None
        await self._channel.close()
