"""HTTP-level tests for the FastAPI app."""

import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from tests.helpers import (
    LoopingUpstream,
    ScriptedUpstream,
    make_chunk,
    parse_sse_body,
    text_turn,
    tool_turn,
)
from tool_relay.app import ChatRequest, create_app, stream_events
from tool_relay.plugins.calculator_plugin import CalculatorPlugin
from tool_relay.service import ChatService
from tool_relay.settings import Settings
from tool_relay.store import InMemoryConversationStore
from tool_relay.tool_registry import ToolRegistry


def make_app(upstream, max_iterations=10):
    settings = Settings(openai_api_key="test", max_iterations=max_iterations)
    return create_app(settings, upstream=upstream, store=InMemoryConversationStore())


def client_for(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_chat_streams_and_stores():
    upstream = ScriptedUpstream([tool_turn("calculate", '{"expression":"2+2"}'), text_turn("4")])
    app = make_app(upstream)

    async with client_for(app) as client:
        response = await client.post("/api/chat", json={"message": "what's 2+2"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"

        events, ended = parse_sse_body(response.text)
        assert ended
        assert [e["type"] for e in events] == ["tool_call", "content", "done"]
        assert events[0]["result"]["result"] == 4
        done = events[-1]
        assert done["fullResponse"]["finalAnswer"] == "4"

        conversation_id = done["conversationId"]
        first = await client.get(f"/api/conversation/{conversation_id}")
        second = await client.get(f"/api/conversation/{conversation_id}")

    assert first.status_code == 200
    assert first.content == second.content
    assert first.json() == done["fullResponse"]


@pytest.mark.asyncio
async def test_client_supplied_conversation_id():
    app = make_app(ScriptedUpstream([text_turn('{"x": 1}')]))

    async with client_for(app) as client:
        response = await client.post("/api/chat", json={"message": "hi", "conversationId": "conv_mine"})
        events, _ = parse_sse_body(response.text)
        stored = await client.get("/api/conversation/conv_mine")

    assert events[-1]["conversationId"] == "conv_mine"
    assert stored.json()["parsedJson"] == {"x": 1}


@pytest.mark.asyncio
async def test_two_requests_without_id_get_distinct_ids():
    app = make_app(ScriptedUpstream([text_turn("a"), text_turn("b")]))

    async with client_for(app) as client:
        ids = []
        for _ in range(2):
            response = await client.post("/api/chat", json={"message": "hi"})
            events, _ = parse_sse_body(response.text)
            ids.append(events[-1]["conversationId"])

    assert ids[0] != ids[1]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"message": ""}, {"conversationId": "conv_1"}])
async def test_missing_message_is_rejected(body):
    upstream = ScriptedUpstream([])
    app = make_app(upstream)

    async with client_for(app) as client:
        response = await client.post("/api/chat", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_unknown_conversation_is_404():
    async with client_for(make_app(ScriptedUpstream([]))) as client:
        response = await client.get("/api/conversation/conv_nope")

    assert response.status_code == 404
    assert response.json() == {"error": "Conversation not found"}


@pytest.mark.asyncio
async def test_iteration_cap_over_http():
    upstream = LoopingUpstream()
    app = make_app(upstream, max_iterations=2)

    async with client_for(app) as client:
        response = await client.post("/api/chat", json={"message": "loop", "conversationId": "conv_loop"})
        events, ended = parse_sse_body(response.text)
        stored = await client.get("/api/conversation/conv_loop")

    assert ended
    assert events[-1]["type"] == "error"
    assert [e["type"] for e in events].count("tool_call") == 2
    assert "done" not in [e["type"] for e in events]
    assert stored.status_code == 404


@pytest.mark.asyncio
async def test_disconnect_cancels_request_and_closes_upstream():
    upstream_closed = asyncio.Event()

    class StallingUpstream:
        async def stream(self, messages, tools):
            try:
                yield make_chunk(content="partial")
                await asyncio.Event().wait()
            finally:
                upstream_closed.set()

    store = InMemoryConversationStore()
    service = ChatService(
        StallingUpstream(), ToolRegistry.from_plugins([CalculatorPlugin()]), store
    )
    units = stream_events(service, ChatRequest(message="hi", conversationId="conv_dropped"))

    first = await units.__anext__()
    await units.aclose()
    await asyncio.wait_for(upstream_closed.wait(), timeout=1)

    assert first.startswith('data: {"type": "content"')
    assert store.get("conv_dropped") is None
    assert len(store) == 0
