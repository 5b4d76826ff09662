"""Broker stand-in backed by the host PC/SC stack (pyscard).

LocalChannel answers the same command set as the remote broker by
calling ``smartcard.scard`` in worker threads, so the session and the
detection engine run unchanged against a reader plugged into this
machine. SCardGetStatusChange blocks its worker until it returns or
SCardCancel is issued from another call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from smartcard import scard

from cardrelay.core.pcsc.channel import Channel, response_envelope

lg = logging.getLogger(__name__)


def _code(hresult: int) -> int:
    return hresult & 0xFFFFFFFF


def _establish_context(scope, *_):
    hresult, hcontext = scard.SCardEstablishContext(scope)
    return [_code(hresult), hcontext]


def _list_readers(hcontext, *_):
    hresult, readers = scard.SCardListReaders(hcontext, [])
    return [_code(hresult), list(readers or [])]


def _connect(hcontext, reader, share_mode, protocols):
    hresult, hcard, protocol = scard.SCardConnect(hcontext, reader, share_mode, protocols)
    return [_code(hresult), hcard, protocol]


def _transmit(hcard, send_pci, apdu, *_):
    protocol = (send_pci or {}).get("protocol", scard.SCARD_PROTOCOL_T1)
    hresult, response = scard.SCardTransmit(hcard, protocol, list(apdu))
    return [_code(hresult), {"protocol": protocol}, list(response or [])]


def _status(hcard):
    hresult, reader, state, protocol, atr = scard.SCardStatus(hcard)
    return [_code(hresult), reader, state, protocol, list(atr or [])]


def _disconnect(hcard, disposition):
    return [_code(scard.SCardDisconnect(hcard, disposition))]


def _get_status_change(hcontext, timeout, reader_states):
    states = [(rs["reader_name"], rs.get("current_state", 0)) for rs in reader_states]
    hresult, updated = scard.SCardGetStatusChange(hcontext, timeout, states)
    out = [
        {
            "reader_name": reader,
            "current_state": current,
            "event_state": event,
            "atr": list(atr or []),
        }
        for (reader, event, atr), (_, current) in zip(updated or [], states)
    ]
    return [_code(hresult), out]


def _cancel(hcontext):
    return [_code(scard.SCardCancel(hcontext))]


def _release_context(hcontext):
    return [_code(scard.SCardReleaseContext(hcontext))]


FUNCTIONS: dict[str, Callable[..., list]] = {
    "SCardEstablishContext": _establish_context,
    "SCardListReaders": _list_readers,
    "SCardConnect": _connect,
    "SCardTransmit": _transmit,
    "SCardStatus": _status,
    "SCardDisconnect": _disconnect,
    "SCardGetStatusChange": _get_status_change,
    "SCardCancel": _cancel,
    "SCardReleaseContext": _release_context,
}


class LocalChannel(Channel):
    """Channel that executes broker calls against the local PC/SC service."""

    def __init__(self, *, call_timeout: float = 10.0) -> None:
        super().__init__(call_timeout=call_timeout)
        self._workers: set[asyncio.Task] = set()

    async def open(self) -> None:
        lg.info("using local PC/SC service")

    async def _send(self, message: dict) -> None:
        data = message["data"]
        task = asyncio.create_task(self._execute(data["request_id"], data["payload"]))
        self._workers.add(task)
        task.add_done_callback(self._workers.discard)

    async def _execute(self, request_id: int, payload: dict) -> None:
        name = payload.get("function_name")
        func = FUNCTIONS.get(name)
        if func is None:
            self._deliver(response_envelope(request_id, error=f"unsupported function {name}"))
            return
        try:
            result = await asyncio.to_thread(func, *payload.get("arguments", []))
        except Exception as exc:
            self._deliver(response_envelope(request_id, error=f"{name}: {exc}"))
            return
        self._deliver(response_envelope(request_id, payload=result))

    async def _close_transport(self) -> None:
        for task in list(self._workers):
            task.cancel()
        self._workers.clear()
