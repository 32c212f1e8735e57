"""Request lifecycle: one user message in, one event stream and one record out."""

import asyncio
import json
import logging
import time
import uuid

from .agent import DEFAULT_MAX_ITERATIONS, ConversationLoggerAdapter, StreamOrchestrator
from .emitter import EventEmitter
from .events import DoneEvent, ErrorEvent
from .exceptions import ChannelClosedError, ToolRelayError
from .settings import DEFAULT_SYSTEM_PROMPT
from .store import ConversationRecord, ConversationStore
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


def generate_conversation_id() -> str:
    """Time-based id with a random suffix, e.g. ``conv_1718000000000_k3j9x0a1b``."""
    return f"conv_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class ChatService:
    """Owns the shared pieces (upstream, tools, store) and runs each request."""

    def __init__(
        self,
        upstream,
        registry: ToolRegistry,
        store: ConversationStore,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        self.upstream = upstream
        self.registry = registry
        self.store = store
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations

    def seed_messages(self, message: str) -> list:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": message},
        ]

    async def handle(
        self, message: str, conversation_id: str | None, emitter: EventEmitter
    ) -> ConversationRecord | None:
        """Stream one request to ``emitter``; return the stored record on success."""
        conversation_id = conversation_id or generate_conversation_id()
        request_logger = ConversationLoggerAdapter(logger, conversation_id)
        request_logger.info(
            "User message received",
            extra={"structured": {"log_type": "user_input", "content": message}},
        )

        orchestrator = StreamOrchestrator(
            self.upstream,
            self.registry,
            emitter,
            self.seed_messages(message),
            max_iterations=self.max_iterations,
            logger=request_logger,
        )

        try:
            final_answer = await orchestrator.run()
            record = ConversationRecord.create(
                conversation_id,
                orchestrator.messages,
                orchestrator.tool_calls,
                final_answer,
            )
            full_response = record.to_dict()
            # Stored only once the done unit reached the client
            await emitter.emit(DoneEvent(conversation_id=conversation_id, full_response=full_response))
            self.store.put(record)
            request_logger.info(
                f"Full response:\n{json.dumps(full_response, indent=2, default=str)}",
                extra={
                    "structured": {
                        "log_type": "conversation_record",
                        "turns": orchestrator.turns,
                        "tool_calls": len(record.tool_calls),
                        "events": emitter.count,
                    }
                },
            )
        except (ChannelClosedError, asyncio.CancelledError) as e:
            request_logger.info(
                "Client went away, aborting request",
                extra={"structured": {"log_type": "request_aborted", "reason": str(e)}},
            )
            if isinstance(e, asyncio.CancelledError):
                raise
            return None
        except ToolRelayError as e:
            request_logger.error(f"Request failed: {e}")
            await self._fail(emitter, str(e))
            return None
        except Exception as e:
            request_logger.exception(f"Streaming error: {e}")
            await self._fail(emitter, str(e))
            return None

        try:
            await emitter.close()
        except ChannelClosedError:
            request_logger.info("SYSTEM: client gone before end of stream marker")
        return record

    async def _fail(self, emitter: EventEmitter, error: str) -> None:
        try:
            await emitter.emit(ErrorEvent(error=error))
            await emitter.close()
        except ChannelClosedError:
            logger.info("SYSTEM: client gone before error could be delivered")
