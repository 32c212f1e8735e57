"""Delta accumulator: rebuild text and tool calls from one streaming turn.

Chat Completions streams split a tool call across many chunks: the first
fragment for an index usually carries the call id and function name, the
following ones carry slices of the JSON argument text. Fragments are merged
by index into a mutable builder and frozen into ``PendingToolCall`` values
once the turn's finish reason arrives.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .events import ContentEvent

TOOL_CALLS_FINISH = "tool_calls"


@dataclass(frozen=True)
class PendingToolCall:
    """A complete tool call issued by the model during one turn."""

    index: int
    id: str
    name: str
    arguments: str

    def to_message(self) -> dict[str, Any]:
        """Wire shape used in assistant messages and the tool call log."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class ToolCallBuilder:
    index: int
    id: str = ""
    name: str = ""
    arguments: str = ""

    def merge(self, call_id: str | None, name: str | None, arguments: str | None) -> None:
        if call_id:
            self.id = call_id
        if name:
            self.name = name
        if arguments:
            self.arguments += arguments

    def build(self) -> PendingToolCall:
        return PendingToolCall(
            index=self.index, id=self.id, name=self.name, arguments=self.arguments
        )


class DeltaAccumulator:
    """Accumulates the chunks of a single streaming turn."""

    def __init__(self):
        self.text = ""
        self.finish_reason: str | None = None
        self._builders: dict[int, ToolCallBuilder] = {}

    @property
    def finished(self) -> bool:
        return self.finish_reason is not None

    @property
    def has_tool_calls(self) -> bool:
        """True when the turn ended by requesting at least one tool call."""
        return self.finish_reason == TOOL_CALLS_FINISH and bool(self._builders)

    def feed(self, chunk: Any) -> ContentEvent | None:
        """Merge one chunk; return a content event for a non-empty text delta."""
        if self.finished:
            return None

        choices = getattr(chunk, "choices", None)
        if not choices:
            return None
        choice = choices[0]
        delta = getattr(choice, "delta", None)

        event = None
        if delta is not None:
            content = getattr(delta, "content", None)
            if content:
                self.text += content
                event = ContentEvent(content=content, accumulated=self.text)

            for tool_delta in getattr(delta, "tool_calls", None) or []:
                self._merge_tool_delta(tool_delta)

        if getattr(choice, "finish_reason", None):
            self.finish_reason = choice.finish_reason
        return event

    def _merge_tool_delta(self, tool_delta: Any) -> None:
        index = getattr(tool_delta, "index", None) or 0
        builder = self._builders.get(index)
        if builder is None:
            builder = self._builders[index] = ToolCallBuilder(index=index)

        function = getattr(tool_delta, "function", None)
        builder.merge(
            getattr(tool_delta, "id", None),
            getattr(function, "name", None),
            getattr(function, "arguments", None),
        )

    def finalize(self) -> list[PendingToolCall]:
        """Freeze the accumulated tool calls, ordered by index."""
        return [self._builders[index].build() for index in sorted(self._builders)]
