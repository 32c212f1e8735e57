"""Observations produced by the agent loop and written to the client stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ContentEvent:
    """A text delta plus the text accumulated so far in the current turn."""

    content: str
    accumulated: str

    def to_payload(self) -> dict[str, Any]:
        return {"type": "content", "content": self.content, "accumulated": self.accumulated}


@dataclass(frozen=True)
class ToolCallEvent:
    """A dispatched tool call with its parsed arguments and result value.

    ``arguments`` is None when the model's argument text could not be parsed.
    """

    tool: str
    arguments: Any
    result: Any

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "tool_call",
            "tool": self.tool,
            "arguments": self.arguments,
            "result": self.result,
        }


@dataclass(frozen=True)
class ErrorEvent:
    error: str

    def to_payload(self) -> dict[str, Any]:
        return {"type": "error", "error": self.error}


@dataclass(frozen=True)
class DoneEvent:
    """Terminal event carrying the stored conversation record."""

    conversation_id: str
    full_response: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "done",
            "conversationId": self.conversation_id,
            "fullResponse": self.full_response,
        }


StreamEvent = ContentEvent | ToolCallEvent | ErrorEvent | DoneEvent
