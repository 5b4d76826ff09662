import asyncio
import json

import httpx

from conftest import Endpoint, dispatch_settings
from cardrelay.core.dispatch import Dispatcher, build_body
from cardrelay.core.smartcard import parse_atr

MIFARE_1K = bytes.fromhex("3B8F8001804F0CA000000306030001000000006A")


def run(dispatcher, coro):
    async def scenario():
        try:
            return await coro
        finally:
            await dispatcher.aclose()

    return asyncio.run(scenario())


def test_build_body_without_metadata():
    assert build_body("04:A1", dispatch_settings()) == {
        "card_id": "04:A1",
        "venue_id": "venue-1",
        "client_id": "client-1",
    }


def test_notify_posts_json():
    endpoint = Endpoint()
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)
    record = run(dispatcher, dispatcher.notify("04:A1:B2:C3", parse_atr(MIFARE_1K)))

    assert record.ok
    assert record.status == 200
    assert record.body == {"ok": True}
    assert record.duration_ms >= 0

    request = endpoint.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://example.test/cards"
    assert request.headers["content-type"] == "application/json"
    sent = json.loads(request.content)
    assert sent["card_id"] == "04:A1:B2:C3"
    assert sent["card_name"] == "MIFARE Classic 1K"
    assert sent["card_rid"] == "NXP (PC/SC standard)"
    assert dispatcher.last_request.body == sent


def test_notify_without_endpoint_is_a_noop(caplog):
    endpoint = Endpoint()
    dispatcher = Dispatcher(lambda: dispatch_settings(endpoint_url=""), transport=endpoint.transport)
    assert run(dispatcher, dispatcher.notify("04:A1")) is None
    assert endpoint.requests == []
    assert dispatcher.last_request is None
    assert "no endpoint configured" in caplog.text


def test_text_response_body():
    endpoint = Endpoint(text="accepted")
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)
    record = run(dispatcher, dispatcher.notify("04:A1"))
    assert record.body == "accepted"


def test_non_2xx_is_recorded_and_logged(caplog):
    endpoint = Endpoint(status=503, json_body={"error": "down"})
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)
    record = run(dispatcher, dispatcher.notify("04:A1"))
    assert not record.ok
    assert record.status == 503
    assert record.body == {"error": "down"}
    assert record.error is None
    assert "answered 503" in caplog.text
    assert len(endpoint.requests) == 1


def test_network_failure_records_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = Dispatcher(dispatch_settings, transport=httpx.MockTransport(refuse))
    record = run(dispatcher, dispatcher.notify("04:A1"))
    assert record.status is None
    assert "connection refused" in record.error
    assert dispatcher.last_response is record
    assert dispatcher.last_request.body["card_id"] == "04:A1"


def test_resend_with_override_body_replaces_records():
    endpoint = Endpoint()
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)

    async def scenario():
        first = await dispatcher.notify("04:A1")
        first_request = dispatcher.last_request
        second = await dispatcher.resend(body={"card_id": "FF"})
        return first, first_request, second

    first, first_request, second = run(dispatcher, scenario())
    assert len(endpoint.requests) == 2
    assert json.loads(endpoint.requests[1].content) == {"card_id": "FF"}
    assert str(endpoint.requests[1].url) == "https://example.test/cards"
    assert dispatcher.last_request is not first_request
    assert dispatcher.last_request.body == {"card_id": "FF"}
    assert dispatcher.last_response is second
    assert second is not first


def test_resend_with_override_url():
    endpoint = Endpoint()
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)

    async def scenario():
        await dispatcher.notify("04:A1")
        await dispatcher.resend(url="https://other.test/hook")

    run(dispatcher, scenario())
    assert str(endpoint.requests[1].url) == "https://other.test/hook"
    assert json.loads(endpoint.requests[1].content)["card_id"] == "04:A1"


def test_resend_without_history_does_nothing():
    endpoint = Endpoint()
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)
    assert run(dispatcher, dispatcher.resend(url="https://other.test/hook")) is None
    assert endpoint.requests == []


def test_request_recorded_before_response():
    seen = []
    endpoint = Endpoint()
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)
    dispatcher.subscribe(lambda: seen.append((dispatcher.last_request, dispatcher.last_response)))
    run(dispatcher, dispatcher.notify("04:A1"))

    (request, response), (_, final) = seen
    assert request.body["card_id"] == "04:A1"
    assert response is None
    assert final.status == 200


def test_resend_waits_for_dispatch_in_flight():
    active = []
    peak = []

    async def slow_echo(request):
        body = json.loads(request.content)
        active.append(body["card_id"])
        peak.append(len(active))
        if body["card_id"] == "04:A1":
            await asyncio.sleep(0.05)
        active.remove(body["card_id"])
        return httpx.Response(200, json=body)

    dispatcher = Dispatcher(dispatch_settings, transport=httpx.MockTransport(slow_echo))

    async def scenario():
        return await asyncio.gather(
            dispatcher.notify("04:A1"),
            dispatcher.resend(url="https://other.test/hook", body={"card_id": "FF"}),
        )

    first, second = run(dispatcher, scenario())
    assert peak == [1, 1]
    assert first.body["card_id"] == "04:A1"
    assert second.body == {"card_id": "FF"}
    assert dispatcher.last_request.body == {"card_id": "FF"}
    assert dispatcher.last_response.body == dispatcher.last_request.body


def test_resend_without_body_replays_previous_body():
    endpoint = Endpoint()
    dispatcher = Dispatcher(dispatch_settings, transport=endpoint.transport)

    async def scenario():
        await dispatcher.notify("04:A1")
        await dispatcher.resend(body=None)

    run(dispatcher, scenario())
    assert endpoint.requests[0].content == endpoint.requests[1].content
