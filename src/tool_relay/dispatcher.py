import json
import logging
from typing import Awaitable, Callable

from .accumulator import PendingToolCall
from .events import ToolCallEvent
from .tool_registry import ToolRegistry, ToolResult

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Executes finalized tool calls and reports each one to the client.

    Every tool-level fault (bad argument JSON, unknown tool, exception inside
    the tool) becomes a failed ``ToolResult`` so the model can react to it.
    Only emission failures escape ``dispatch``.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        emit: Callable[[ToolCallEvent], Awaitable[None]],
        logger: logging.Logger | logging.LoggerAdapter = logger,
    ):
        self.registry = registry
        self.emit = emit
        self.logger = logger

    def log_item(self, item_type: str, extra: dict):
        structured = {"log_type": item_type, **extra}
        self.logger.info(
            f"{item_type.replace('_', ' ').title()} received", extra={"structured": structured}
        )

    async def dispatch(self, call: PendingToolCall) -> ToolResult:
        self.log_item(
            "tool_call",
            {"tool_name": call.name, "arguments": call.arguments, "call_id": call.id},
        )

        args = None
        try:
            args = json.loads(call.arguments or "{}")
        except json.JSONDecodeError as e:
            self.logger.info(f"TOOL JSON ERROR: {call.name} - {str(e)}")
            result = ToolResult.failure(f"Error parsing arguments: {str(e)}")
        else:
            result = await self._invoke(call.name, args)

        self.log_item("tool_result", {"tool_name": call.name, "result": result.to_value()})
        await self.emit(
            ToolCallEvent(tool=call.name, arguments=args, result=result.to_value())
        )
        return result

    async def _invoke(self, name: str, args) -> ToolResult:
        if not isinstance(args, dict):
            return ToolResult.failure("Arguments must be a JSON object")
        if not self.registry.has_tool(name):
            self.logger.info(f"TOOL UNKNOWN: {name}")
            return ToolResult.failure(f"Unknown tool: {name}")

        try:
            output = await self.registry.execute_tool(name, args)
        except Exception as e:
            self.logger.info(f"TOOL ERROR: {name} - {str(e)}")
            return ToolResult.failure(f"Tool execution failed: {str(e)}")

        result = output if isinstance(output, ToolResult) else ToolResult.success(output)
        try:
            result.to_text()
        except (TypeError, ValueError) as e:
            self.logger.info(f"TOOL RESULT ERROR: {name} - {str(e)}")
            return ToolResult.failure(f"Tool result is not serializable: {str(e)}")
        return result
