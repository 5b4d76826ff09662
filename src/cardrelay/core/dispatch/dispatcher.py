from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from cardrelay.core.errors import DispatchError
from cardrelay.core.eventlog import utc_now
from cardrelay.core.smartcard import AtrInfo

lg = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class DispatchSettings(Protocol):
    endpoint_url: str
    venue_id: str
    client_id: str


@dataclass(frozen=True)
class RequestRecord:
    url: str
    body: Any
    timestamp: str
    headers: dict[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))


@dataclass(frozen=True)
class ResponseRecord:
    duration_ms: float
    timestamp: str
    status: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status is not None and 200 <= self.status < 300


def build_body(uid: str, settings: DispatchSettings, info: AtrInfo | None = None) -> dict[str, str]:
    body = {
        "card_id": uid,
        "venue_id": settings.venue_id,
        "client_id": settings.client_id,
    }
    if info is not None:
        body.update(info.fields())
    return body


def _decode_body(resp: httpx.Response) -> Any:
    if "application/json" in resp.headers.get("content-type", ""):
        try:
            return resp.json()
        except ValueError:
            lg.debug("response claimed JSON but did not parse")
    return resp.text


class Dispatcher:
    """Posts card detections to the configured endpoint.

    The most recent request/response pair is kept for inspection and
    manual replay. Nothing is retried automatically.
    """

    def __init__(
        self,
        settings: Callable[[], DispatchSettings],
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._last_request: RequestRecord | None = None
        self._last_response: ResponseRecord | None = None
        self._listeners: list[Callable[[], None]] = []
        # one request in flight; the recorded pair always belongs together
        self._lock = asyncio.Lock()

    @property
    def last_request(self) -> RequestRecord | None:
        return self._last_request

    @property
    def last_response(self) -> ResponseRecord | None:
        return self._last_response

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                lg.debug("dispatch listener failed", exc_info=True)

    async def notify(self, uid: str, info: AtrInfo | None = None) -> ResponseRecord | None:
        """Send the notification for a freshly read card."""
        settings = self._settings()
        if not settings.endpoint_url:
            lg.warning("no endpoint configured, card %s not sent", uid)
            return None
        body = build_body(uid, settings, info)
        async with self._lock:
            return await self._send(settings.endpoint_url, body)

    async def resend(self, url: str | None = None, body: Any = None) -> ResponseRecord | None:
        """Replay the last request, optionally with a different url and/or body.

        ``None`` keeps the previous value, so a JSON ``null`` body cannot be
        resent. Waits for any dispatch in flight and replays what it sent.
        """
        async with self._lock:
            last = self._last_request
            if last is None and (url is None or body is None):
                lg.warning("nothing to resend: no previous request")
                return None
            target = url or last.url
            payload = body if body is not None else last.body
            lg.info("resending to %s", target)
            return await self._send(target, payload)

    async def _send(self, url: str, body: Any) -> ResponseRecord:
        self._last_request = RequestRecord(url=url, body=body, timestamp=utc_now())
        self._last_response = None
        self._changed()

        started = time.perf_counter()
        try:
            record = await self._post(url, body, started)
        except DispatchError as exc:
            record = ResponseRecord(
                duration_ms=_elapsed_ms(started), timestamp=utc_now(), error=str(exc),
            )
            lg.error("%s", exc, extra={"detail": {"url": url}})
        else:
            if record.ok:
                lg.info(
                    "POST %s -> %d (%.0f ms)", url, record.status, record.duration_ms,
                    extra={"detail": {"status": record.status, "body": record.body}},
                )
            else:
                lg.error(
                    "%s", DispatchError(f"POST {url} answered {record.status}"),
                    extra={"detail": {"status": record.status, "body": record.body}},
                )
        self._last_response = record
        self._changed()
        return record

    async def _post(self, url: str, body: Any, started: float) -> ResponseRecord:
        try:
            resp = await self._client.post(url, json=body, headers=JSON_HEADERS)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DispatchError(f"POST {url} failed: {str(exc) or type(exc).__name__}") from exc
        return ResponseRecord(
            duration_ms=_elapsed_ms(started),
            timestamp=utc_now(),
            status=resp.status_code,
            headers=dict(resp.headers),
            body=_decode_body(resp),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)
