import logging
from contextlib import aclosing

from openai import OpenAIError

from .accumulator import DeltaAccumulator, PendingToolCall
from .dispatcher import ToolDispatcher
from .emitter import EventEmitter
from .exceptions import ChannelClosedError, IterationLimitError, UpstreamError
from .tool_registry import ToolRegistry, ToolResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class ConversationLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that automatically injects conversation_id into structured logs."""

    def __init__(self, logger, conversation_id):
        self.conversation_id = conversation_id
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        # Inject conversation_id into structured logs
        if "extra" in kwargs and "structured" in kwargs["extra"]:
            kwargs["extra"]["structured"]["conversation_id"] = self.conversation_id
        return msg, kwargs


class StreamOrchestrator:
    """Runs the streaming tool loop for one request.

    Each turn streams the model output to the emitter. A turn that ends with
    tool calls appends the assistant and tool messages and opens another
    turn with one less iteration left; a turn that ends with content is the
    final answer. ``messages`` and ``tool_calls`` are owned by this instance
    and only grow while ``run`` is executing.
    """

    def __init__(
        self,
        upstream,
        registry: ToolRegistry,
        emitter: EventEmitter,
        messages: list,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        logger: logging.Logger | logging.LoggerAdapter = logger,
    ):
        self.upstream = upstream
        self.registry = registry
        self.emitter = emitter
        self.messages = messages
        self.max_iterations = max_iterations
        self.logger = logger
        self.dispatcher = ToolDispatcher(registry, emitter.emit, logger=logger)
        self.tool_calls: list = []
        self.turns = 0

    async def run(self) -> str:
        """Drive turns until the model answers with content; return that text."""
        remaining = self.max_iterations
        while True:
            final_answer = await self._run_turn(remaining)
            if final_answer is not None:
                return final_answer
            remaining -= 1

    async def _run_turn(self, remaining: int) -> str | None:
        """Run one turn; return the final answer, or None when tools were called."""
        if remaining <= 0:
            raise IterationLimitError(self.max_iterations)

        self.turns += 1
        self.logger.info(
            f"Opening turn {self.turns}",
            extra={
                "structured": {
                    "log_type": "turn_start",
                    "turn": self.turns,
                    "remaining": remaining,
                    "message_count": len(self.messages),
                }
            },
        )

        accumulator = DeltaAccumulator()
        try:
            stream = self.upstream.stream(self.messages, self.registry.get_schemas())
            async with aclosing(stream):
                async for chunk in stream:
                    if self.emitter.closed:
                        raise ChannelClosedError("Client disconnected")
                    event = accumulator.feed(chunk)
                    if event is not None:
                        await self.emitter.emit(event)
                    if accumulator.finished:
                        break
        except OpenAIError as e:
            raise UpstreamError(str(e)) from e

        if accumulator.has_tool_calls:
            await self._run_tools(accumulator.finalize())
            return None

        self.messages.append({"role": "assistant", "content": accumulator.text})
        self.logger.info(
            "Final answer received",
            extra={"structured": {"log_type": "final_answer", "content": accumulator.text}},
        )
        return accumulator.text

    async def _run_tools(self, calls: list[PendingToolCall]) -> None:
        self.messages.append(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [call.to_message() for call in calls],
            }
        )
        self.tool_calls.extend(call.to_message() for call in calls)

        # One at a time, in index order, so the tool messages are deterministic
        for call in calls:
            if call.name:
                result = await self.dispatcher.dispatch(call)
            else:
                self.logger.warning(
                    f"Skipping tool call {call.id or call.index} with empty name"
                )
                result = ToolResult.failure("Tool call is missing a name")
            self.messages.append(
                {"role": "tool", "tool_call_id": call.id, "content": result.to_text()}
            )
