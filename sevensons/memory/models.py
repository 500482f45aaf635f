"""
Conversation memory records.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StoredMessage:
    content: str
    is_user: bool
    timestamp: str = ""
    role_id: Optional[str] = None
    user_id: Optional[str] = None

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = utc_now()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "content": self.content,
            "isUser": self.is_user,
            "timestamp": self.timestamp,
        }
        if self.role_id:
            result["roleId"] = self.role_id
        if self.user_id:
            result["userId"] = self.user_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredMessage":
        return cls(
            content=str(data.get("content", "")),
            is_user=bool(data.get("isUser", False)),
            timestamp=str(data.get("timestamp", "")),
            role_id=data.get("roleId"),
            user_id=data.get("userId"),
        )


@dataclass
class MemorySnippet:
    content: str
    importance: float
    timestamp: str = ""
    context: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = utc_now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "importance": self.importance,
            "timestamp": self.timestamp,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemorySnippet":
        return cls(
            content=str(data.get("content", "")),
            importance=float(data.get("importance", 0)),
            timestamp=str(data.get("timestamp", "")),
            context=str(data.get("context", "")),
        )


@dataclass
class ConversationRecord:
    role_id: str
    session_id: str
    messages: list[StoredMessage] = field(default_factory=list)
    memory_snippets: list[MemorySnippet] = field(default_factory=list)
    conversation_summary: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
    last_message_at: str = ""

    def __post_init__(self):
        now = utc_now()
        self.created_at = self.created_at or now
        self.updated_at = self.updated_at or now

    def to_row(self) -> dict[str, Any]:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "memory_snippets": [s.to_dict() for s in self.memory_snippets],
            "conversation_summary": self.conversation_summary,
            "user_id": self.user_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_message_at": self.last_message_at,
        }

    @classmethod
    def from_row(cls, role_id: str, session_id: str, row: dict[str, Any]) -> "ConversationRecord":
        return cls(
            role_id=role_id,
            session_id=session_id,
            messages=[StoredMessage.from_dict(m) for m in row.get("messages") or []],
            memory_snippets=[MemorySnippet.from_dict(s) for s in row.get("memory_snippets") or []],
            conversation_summary=row.get("conversation_summary"),
            user_id=row.get("user_id"),
            created_at=row.get("created_at") or "",
            updated_at=row.get("updated_at") or "",
            last_message_at=row.get("last_message_at") or "",
        )

    def get_stats(self) -> dict:
        return {
            "message_count": len(self.messages),
            "memory_snippets": len(self.memory_snippets),
            "has_summary": bool(self.conversation_summary),
            "last_message_at": self.last_message_at,
        }
