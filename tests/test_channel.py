import asyncio

import pytest

from cardrelay.core.errors import CallTimeout, ChannelClosed, TransportError
from cardrelay.core.pcsc.channel import (
    REQUEST_TYPE,
    Channel,
    request_envelope,
    response_envelope,
)


class RecordingChannel(Channel):
    """Channel that keeps sent messages and never answers on its own."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.sent: list[dict] = []

    async def open(self) -> None:
        pass

    async def _send(self, message: dict) -> None:
        self.sent.append(message)


def test_request_envelope_shape():
    message = request_envelope(3, "SCardListReaders", [7, None])
    assert message == {
        "type": REQUEST_TYPE,
        "data": {
            "request_id": 3,
            "payload": {"function_name": "SCardListReaders", "arguments": [7, None]},
        },
    }


def test_responses_are_correlated_by_id():
    async def scenario():
        channel = RecordingChannel()
        first = asyncio.create_task(channel.call("SCardEstablishContext", [2, None, None]))
        second = asyncio.create_task(channel.call("SCardListReaders", [7, None]))
        await asyncio.sleep(0)
        ids = [m["data"]["request_id"] for m in channel.sent]
        assert ids == [1, 2]
        # answer out of order
        channel._deliver(response_envelope(2, [0, ["reader"]]))
        channel._deliver(response_envelope(1, [0, 7]))
        return await first, await second, channel.pending

    first, second, pending = asyncio.run(scenario())
    assert first == [0, 7]
    assert second == [0, ["reader"]]
    assert pending == 0


def test_unmatched_and_foreign_messages_are_discarded():
    async def scenario():
        channel = RecordingChannel()
        task = asyncio.create_task(channel.call("SCardCancel", [7]))
        await asyncio.sleep(0)
        channel._deliver(response_envelope(99, [0]))
        channel._deliver({"type": "something_else", "data": {"request_id": 1}})
        assert not task.done()
        channel._deliver(response_envelope(1, [0]))
        return await task

    assert asyncio.run(scenario()) == [0]


def test_broker_error_fails_the_call():
    async def scenario():
        channel = RecordingChannel()
        task = asyncio.create_task(channel.call("SCardConnect", [7, "r", 2, 3]))
        await asyncio.sleep(0)
        channel._deliver(response_envelope(1, error="reader went away"))
        await task

    with pytest.raises(TransportError, match="reader went away"):
        asyncio.run(scenario())


def test_disconnect_fails_every_pending_call():
    async def scenario():
        channel = RecordingChannel()
        tasks = [
            asyncio.create_task(channel.call("SCardStatus", [n]))
            for n in range(5)
        ]
        await asyncio.sleep(0)
        assert channel.pending == 5
        channel._disconnected("socket dropped")
        results = await asyncio.gather(*tasks, return_exceptions=True)
        return results, channel

    results, channel = asyncio.run(scenario())
    assert all(isinstance(r, ChannelClosed) for r in results)
    assert channel.pending == 0
    assert not channel.connected


def test_call_on_closed_channel_raises():
    async def scenario():
        channel = RecordingChannel()
        await channel.close()
        await channel.call("SCardCancel", [7])

    with pytest.raises(ChannelClosed):
        asyncio.run(scenario())


def test_call_times_out_and_is_forgotten():
    async def scenario():
        channel = RecordingChannel(call_timeout=0.01)
        with pytest.raises(CallTimeout):
            await channel.call("SCardStatus", [1])
        # a late answer is discarded
        channel._deliver(response_envelope(1, [0]))
        return channel.pending

    assert asyncio.run(scenario()) == 0
