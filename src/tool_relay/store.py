"""Conversation records and the store that keeps them."""

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, json.JSONDecodeError):
        return None


@dataclass(frozen=True)
class ConversationRecord:
    """Immutable log of one request: full history, tool calls and final answer."""

    id: str
    messages: tuple
    tool_calls: tuple
    final_answer: str
    parsed_json: Any = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @classmethod
    def create(
        cls,
        conversation_id: str,
        messages: list,
        tool_calls: list,
        final_answer: str,
        timestamp: Optional[str] = None,
    ) -> "ConversationRecord":
        """Snapshot the given history; later changes to the lists do not leak in."""
        kwargs = {}
        if timestamp is not None:
            kwargs["timestamp"] = timestamp
        return cls(
            id=conversation_id,
            messages=tuple(copy.deepcopy(messages)),
            tool_calls=tuple(copy.deepcopy(tool_calls)),
            final_answer=final_answer,
            parsed_json=_parse_json(final_answer),
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "messages": copy.deepcopy(list(self.messages)),
            "toolCalls": copy.deepcopy(list(self.tool_calls)),
            "finalAnswer": self.final_answer,
            "parsedJson": copy.deepcopy(self.parsed_json),
            "timestamp": self.timestamp,
        }


class ConversationStore(Protocol):
    def get(self, conversation_id: str) -> Optional[ConversationRecord]: ...

    def put(self, record: ConversationRecord) -> None: ...


class InMemoryConversationStore:
    """Process-local store; contents are lost on restart.

    Only touched from the event loop thread, so inserts need no locking.
    """

    def __init__(self):
        self.records: Dict[str, ConversationRecord] = {}

    def get(self, conversation_id: str) -> Optional[ConversationRecord]:
        return self.records.get(conversation_id)

    def put(self, record: ConversationRecord) -> None:
        if record.id in self.records:
            logger.info(f"Replacing stored conversation {record.id}")
        self.records[record.id] = record

    def __len__(self) -> int:
        return len(self.records)
