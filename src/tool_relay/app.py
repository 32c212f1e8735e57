import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .emitter import EventEmitter, QueueChannel
from .plugins.calculator_plugin import CalculatorPlugin
from .plugins.weather_plugin import WeatherPlugin
from .service import ChatService
from .settings import Settings
from .store import InMemoryConversationStore
from .tool_registry import ToolRegistry
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable buffering in nginx
}


class ChatRequest(BaseModel):
    message: str | None = None
    conversationId: str | None = None


def default_plugins() -> list:
    return [WeatherPlugin(), CalculatorPlugin()]


async def stream_events(service: ChatService, body: ChatRequest):
    """Run one request in its own task and relay its units as they arrive."""
    channel = QueueChannel()
    emitter = EventEmitter(channel)
    task = asyncio.create_task(service.handle(body.message, body.conversationId, emitter))
    try:
        async for unit in channel:
            yield unit
    finally:
        # Response finished or the client disconnected
        channel.close()
        if not task.done():
            logger.info("SYSTEM: Client disconnected, cancelling request")
            task.cancel()


def create_app(
    settings: Settings | None = None,
    upstream=None,
    store=None,
    plugins: list | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    upstream = upstream or UpstreamClient(
        model_name=settings.model_name,
        json_mode=settings.json_mode,
        api_key=settings.openai_api_key,
    )
    registry = ToolRegistry.from_plugins(default_plugins() if plugins is None else plugins)
    service = ChatService(
        upstream,
        registry,
        store if store is not None else InMemoryConversationStore(),
        system_prompt=settings.system_prompt,
        max_iterations=settings.max_iterations,
    )

    app = FastAPI()
    app.add_middleware(
        CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"]
    )

    @app.post("/api/chat")
    async def chat(body: ChatRequest):
        if not body.message:
            return JSONResponse({"error": "Message is required"}, status_code=400)
        return StreamingResponse(
            stream_events(service, body), media_type="text/event-stream", headers=SSE_HEADERS
        )

    @app.get("/api/conversation/{conversation_id}")
    async def get_conversation(conversation_id: str):
        record = service.store.get(conversation_id)
        if record is None:
            return JSONResponse({"error": "Conversation not found"}, status_code=404)
        return record.to_dict()

    return app
