"""
Tool Relay - streaming chat relay with transparent tool execution.

This package forwards a user message to an OpenAI chat model, streams the
generated text back as Server-Sent Events, and runs model-issued tool calls
between turns until the model produces a final answer.
"""

__version__ = "0.1.0"

from .agent import StreamOrchestrator
from .service import ChatService
from .store import ConversationRecord, InMemoryConversationStore
from .tool_registry import ToolRegistry, ToolResult, callable_to_tool_schema

__all__ = [
    "StreamOrchestrator",
    "ChatService",
    "ConversationRecord",
    "InMemoryConversationStore",
    "ToolRegistry",
    "ToolResult",
    "callable_to_tool_schema",
]
