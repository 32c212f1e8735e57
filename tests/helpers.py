"""Builders for scripted chat completion streams and stream parsing."""

import copy
import json

import httpx
from openai import APIConnectionError
from openai.types.chat import ChatCompletionChunk
from openai.types.chat.chat_completion_chunk import (
    Choice,
    ChoiceDelta,
    ChoiceDeltaToolCall,
    ChoiceDeltaToolCallFunction,
)

from tool_relay.emitter import END_OF_STREAM


def make_chunk(content=None, tool_calls=None, finish_reason=None) -> ChatCompletionChunk:
    """Create a chunk with one choice."""
    return ChatCompletionChunk(
        id="chatcmpl-test",
        object="chat.completion.chunk",
        created=0,
        model="gpt-4o",
        choices=[
            Choice(
                index=0,
                delta=ChoiceDelta(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ],
    )


def tool_delta(index=0, call_id=None, name=None, arguments=None) -> ChoiceDeltaToolCall:
    return ChoiceDeltaToolCall(
        index=index,
        id=call_id,
        type="function" if call_id else None,
        function=ChoiceDeltaToolCallFunction(name=name, arguments=arguments),
    )


def text_turn(*pieces):
    """A turn that streams ``pieces`` and stops."""
    return [make_chunk(content=p) for p in pieces] + [make_chunk(finish_reason="stop")]


def tool_turn(name, arguments, call_id="call_1", index=0, split=3):
    """A turn with one tool call whose argument text is split into slices."""
    chunks = [make_chunk(tool_calls=[tool_delta(index, call_id, name, "")])]
    for start in range(0, len(arguments), split):
        chunks.append(
            make_chunk(tool_calls=[tool_delta(index, arguments=arguments[start : start + split])])
        )
    chunks.append(make_chunk(finish_reason="tool_calls"))
    return chunks


class ScriptedUpstream:
    """Replays one scripted chunk list per turn and records what it was sent."""

    def __init__(self, turns):
        self.turns = list(turns)
        self.requests = []
        self.closed = 0

    async def stream(self, messages, tools):
        self.requests.append({"messages": copy.deepcopy(messages), "tools": tools})
        chunks = self.turns.pop(0)
        try:
            for chunk in chunks:
                if isinstance(chunk, Exception):
                    raise chunk
                yield chunk
        finally:
            self.closed += 1


class LoopingUpstream(ScriptedUpstream):
    """Requests a tool call on every turn."""

    def __init__(self):
        super().__init__([])

    async def stream(self, messages, tools):
        self.requests.append({"messages": copy.deepcopy(messages), "tools": tools})
        turn = len(self.requests)
        for chunk in tool_turn("calculate", '{"expression": "1+1"}', call_id=f"call_{turn}"):
            yield chunk


def connection_error() -> APIConnectionError:
    return APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))


def parse_units(units):
    """Split SSE units into decoded event payloads and the end marker flag."""
    events = []
    ended = False
    for unit in units:
        assert unit.startswith("data: ") and unit.endswith("\n\n")
        if unit == END_OF_STREAM:
            ended = True
            continue
        assert not ended, "unit written after end of stream"
        events.append(json.loads(unit[len("data: ") : -2]))
    return events, ended


def parse_sse_body(body: str):
    units = [f"{block}\n\n" for block in body.split("\n\n") if block]
    return parse_units(units)


def drain(channel):
    """Collect every unit queued on a QueueChannel."""
    units = []
    while not channel.queue.empty():
        unit = channel.queue.get_nowait()
        if isinstance(unit, str):
            units.append(unit)
    return units
