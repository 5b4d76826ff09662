from __future__ import annotations

import asyncio
from collections import deque
from types import SimpleNamespace

import httpx
import pytest

from cardrelay.core.pcsc import constants as C
from cardrelay.core.pcsc.channel import Channel, response_envelope
from cardrelay.core.pcsc.session import PcscSession

READER = "ACS ACR122U PICC Interface 00 00"
UID_BYTES = [0x04, 0xA1, 0xB2, 0xC3]
MIFARE_ATR = list(bytes.fromhex("3B8F8001804F0CA000000306030001000000006A"))


class FakeChannel(Channel):
    """In-memory broker: answers each function from a scripted table.

    A table entry is either a result list (answered every time), a deque
    of result lists (answered in order, the last one repeated), or a
    callable taking the call arguments. ``None`` leaves the call pending.
    """

    def __init__(self, responses: dict | None = None, *, call_timeout: float = 1.0) -> None:
        super().__init__(call_timeout=call_timeout)
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, list]] = []
        self.opened = False

    async def open(self) -> None:
        self.opened = True

    def count(self, name: str) -> int:
        return sum(1 for fn, _ in self.calls if fn == name)

    async def _send(self, message: dict) -> None:
        data = message["data"]
        name = data["payload"]["function_name"]
        args = data["payload"]["arguments"]
        self.calls.append((name, args))
        reply = self.responses.get(name)
        if isinstance(reply, deque):
            reply = reply.popleft() if len(reply) > 1 else reply[0]
        if callable(reply):
            reply = reply(*args)
        if reply is None:
            return
        self._deliver(response_envelope(data["request_id"], payload=list(reply)))


def broker_table(**overrides) -> dict:
    """Responses for a broker with one reader and a MIFARE card seated."""
    table = {
        "SCardEstablishContext": [C.SCARD_S_SUCCESS, 7],
        "SCardListReaders": [C.SCARD_S_SUCCESS, [READER]],
        "SCardConnect": [C.SCARD_S_SUCCESS, 0x1234, C.SCARD_PROTOCOL_T1],
        "SCardTransmit": [C.SCARD_S_SUCCESS, {"protocol": C.SCARD_PROTOCOL_T1}, UID_BYTES + [0x90, 0x00]],
        "SCardStatus": [C.SCARD_S_SUCCESS, READER, C.SCARD_STATE_PRESENT, C.SCARD_PROTOCOL_T1, MIFARE_ATR],
        "SCardDisconnect": [C.SCARD_S_SUCCESS],
        "SCardCancel": [C.SCARD_S_SUCCESS],
        "SCardReleaseContext": [C.SCARD_S_SUCCESS],
        "SCardGetStatusChange": [C.SCARD_E_TIMEOUT],
    }
    table.update(overrides)
    return table


def status_change(event_state: int, atr: list[int] | None = None) -> list:
    return [C.SCARD_S_SUCCESS, [{
        "reader_name": READER,
        "current_state": 0,
        "event_state": event_state,
        "atr": atr or [],
    }]]


class ManualClock:
    """Clock that records requested sleeps and returns immediately."""

    def __init__(self) -> None:
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)


class Endpoint:
    """httpx MockTransport handler that records requests."""

    def __init__(self, status: int = 200, json_body=None, text: str | None = None) -> None:
        self.status = status
        self.json_body = {"ok": True} if json_body is None and text is None else json_body
        self.text = text
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.json_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def dispatch_settings(**overrides) -> SimpleNamespace:
    values = {
        "endpoint_url": "https://example.test/cards",
        "venue_id": "venue-1",
        "client_id": "client-1",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel(broker_table())


@pytest.fixture
def session(channel) -> PcscSession:
    return PcscSession(channel)
