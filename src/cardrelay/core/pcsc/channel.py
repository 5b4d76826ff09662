"""Duplex message channel to the PC/SC broker.

Calls are correlated with responses by a per-channel request id. A call
suspends until its response arrives, its deadline passes, or the
channel goes away; in the last case every outstanding call fails with
ChannelClosed so nothing is left waiting.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from cardrelay.core.errors import CallTimeout, ChannelClosed, TransportError
from cardrelay.core.smartcard.logging import TRACE

lg = logging.getLogger(__name__)

REQUEST_TYPE = "pcsc_lite_function_call::request"
RESPONSE_TYPE = "pcsc_lite_function_call::response"

DEFAULT_CALL_TIMEOUT = 10.0


def request_envelope(request_id: int, function_name: str, arguments: list) -> dict:
    return {
        "type": REQUEST_TYPE,
        "data": {
            "request_id": request_id,
            "payload": {"function_name": function_name, "arguments": arguments},
        },
    }


def response_envelope(request_id: int, payload: list | None = None, error: str | None = None) -> dict:
    data: dict[str, Any] = {"request_id": request_id}
    if error is not None:
        data["error"] = error
    else:
        data["payload"] = payload
    return {"type": RESPONSE_TYPE, "data": data}


class Channel:
    """Base channel: owns the correlation table, subclasses move the bytes.

    Subclasses implement ``open``, ``_send`` and ``_close_transport`` and
    feed every decoded incoming message to ``_deliver``. When the
    underlying link drops they call ``_disconnected``.
    """

    def __init__(self, *, call_timeout: float = DEFAULT_CALL_TIMEOUT) -> None:
        self._call_timeout = call_timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._closed = False

    @property
    def connected(self) -> bool:
        return not self._closed

    @property
    def call_timeout(self) -> float:
        return self._call_timeout

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def open(self) -> None:
        raise NotImplementedError

    async def _send(self, message: dict) -> None:
        raise NotImplementedError

    async def _close_transport(self) -> None:
        pass

    async def call(
        self, function_name: str, arguments: list, *, timeout: float | None = None,
    ) -> list:
        """Issue one broker call and return its raw result tuple."""
        if self._closed:
            raise ChannelClosed(f"{function_name}: channel is closed")
        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        message = request_envelope(request_id, function_name, arguments)
        lg.log(TRACE, ">> #%d %s %s", request_id, function_name, arguments)
        deadline = self._call_timeout if timeout is None else timeout
        try:
            await self._send(message)
            return await asyncio.wait_for(future, deadline)
        except asyncio.TimeoutError:
            raise CallTimeout(
                f"{function_name}: no response within {deadline:g}s"
            ) from None
        finally:
            self._pending.pop(request_id, None)

    def _deliver(self, message: dict) -> None:
        if message.get("type") != RESPONSE_TYPE:
            lg.log(TRACE, "ignoring message of type %r", message.get("type"))
            return
        data = message.get("data") or {}
        request_id = data.get("request_id")
        future = self._pending.pop(request_id, None)
        if future is None or future.done():
            lg.log(TRACE, "discarding unmatched response #%s", request_id)
            return
        if data.get("error") is not None:
            future.set_exception(TransportError(f"broker error: {data['error']}"))
            return
        payload = data.get("payload")
        if not isinstance(payload, list) or not payload:
            future.set_exception(TransportError(f"malformed result for #{request_id}: {payload!r}"))
            return
        lg.log(TRACE, "<< #%d %s", request_id, payload)
        future.set_result(payload)

    def _fail_pending(self, exc: Exception) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(exc)

    def _disconnected(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        lg.warning("broker channel lost: %s", reason)
        self._fail_pending(ChannelClosed(f"broker disconnected: {reason}"))

    async def close(self) -> None:
        """Close the channel; outstanding calls fail with ChannelClosed."""
        if self._closed:
            return
        self._closed = True
        self._fail_pending(ChannelClosed("channel closed"))
        await self._close_transport()


class WebSocketChannel(Channel):
    """Channel carried as JSON text frames over a WebSocket."""

    def __init__(
        self, url: str, *, call_timeout: float = DEFAULT_CALL_TIMEOUT,
        open_timeout: float = 10.0,
    ) -> None:
        super().__init__(call_timeout=call_timeout)
        self._url = url
        self._open_timeout = open_timeout
        self._ws = None
        self._reader: asyncio.Task | None = None

    async def open(self) -> None:
        try:
            self._ws = await websockets.connect(self._url, open_timeout=self._open_timeout)
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            self._closed = True
            raise TransportError(f"cannot reach broker at {self._url}: {exc}") from exc
        lg.info("connected to broker at %s", self._url)
        self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        reason = "connection closed by broker"
        try:
            async for raw in self._ws:
                try:
                    message = json.loads(raw)
                except ValueError:
                    lg.warning("discarding malformed broker message")
                    continue
                if isinstance(message, dict):
                    self._deliver(message)
        except ConnectionClosed as exc:
            reason = str(exc)
        self._disconnected(reason)

    async def _send(self, message: dict) -> None:
        try:
            await self._ws.send(json.dumps(message))
        except ConnectionClosed as exc:
            self._disconnected(str(exc))
            raise ChannelClosed(f"broker disconnected: {exc}") from exc

    async def _close_transport(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        if self._reader is not None:
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
