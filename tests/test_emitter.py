"""Tests for EventEmitter and QueueChannel."""

import json

import pytest

from tests.helpers import drain, parse_units
from tool_relay.emitter import END_OF_STREAM, EventEmitter, QueueChannel, encode_event
from tool_relay.events import ContentEvent, DoneEvent, ErrorEvent, ToolCallEvent
from tool_relay.exceptions import ChannelClosedError


class BrokenChannel:
    closed = False

    def __init__(self):
        self.attempts = 0
        self.released = False

    async def send(self, unit):
        self.attempts += 1
        raise ConnectionResetError("peer reset")

    def close(self):
        self.released = True


def test_encode_event_is_one_sse_unit():
    unit = encode_event(ContentEvent(content="héllo\n", accumulated="héllo\n"))

    assert unit.startswith("data: ")
    assert unit.endswith("\n\n")
    assert unit.count("\n\n") == 1
    assert json.loads(unit[6:-2]) == {"type": "content", "content": "héllo\n", "accumulated": "héllo\n"}


@pytest.mark.asyncio
async def test_units_written_in_order_then_end_marker():
    channel = QueueChannel()
    emitter = EventEmitter(channel)

    await emitter.emit(ContentEvent("a", "a"))
    await emitter.emit(ToolCallEvent("calculate", {"expression": "1"}, {"result": 1}))
    await emitter.emit(ContentEvent("b", "b"))
    await emitter.emit(DoneEvent("conv_1", {"id": "conv_1"}))
    await emitter.close()

    units = drain(channel)
    assert units[-1] == END_OF_STREAM
    events, ended = parse_units(units)
    assert ended
    assert [e["type"] for e in events] == ["content", "tool_call", "content", "done"]
    assert events[3]["conversationId"] == "conv_1"
    assert emitter.count == 4
    assert emitter.closed


@pytest.mark.asyncio
async def test_channel_iteration_stops_at_close():
    channel = QueueChannel()
    emitter = EventEmitter(channel)
    await emitter.emit(ErrorEvent("boom"))
    await emitter.close()

    units = [unit async for unit in channel]
    assert units == [encode_event(ErrorEvent("boom")), END_OF_STREAM]


@pytest.mark.asyncio
async def test_emit_after_close_raises():
    emitter = EventEmitter(QueueChannel())
    await emitter.close()

    with pytest.raises(ChannelClosedError):
        await emitter.emit(ContentEvent("late", "late"))


@pytest.mark.asyncio
async def test_close_is_idempotent():
    channel = QueueChannel()
    emitter = EventEmitter(channel)
    await emitter.close()
    await emitter.close()

    assert drain(channel) == [END_OF_STREAM]


@pytest.mark.asyncio
async def test_closed_channel_detected():
    channel = QueueChannel()
    emitter = EventEmitter(channel)
    channel.close()

    assert emitter.closed
    with pytest.raises(ChannelClosedError):
        await emitter.emit(ContentEvent("x", "x"))


@pytest.mark.asyncio
async def test_failed_write_is_not_retried():
    channel = BrokenChannel()
    emitter = EventEmitter(channel)

    with pytest.raises(ChannelClosedError):
        await emitter.emit(ContentEvent("x", "x"))
    with pytest.raises(ChannelClosedError):
        await emitter.emit(ContentEvent("y", "y"))
    await emitter.close()

    assert channel.attempts == 1
    assert channel.released
