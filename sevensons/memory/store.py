"""
Per-role conversation memory.
Keeps a sliding window of messages, the most important memory snippets and
a short topic summary for every (role, session) pair. Storage failures
degrade to empty reads and skipped writes.
"""

import logging
from typing import Callable, Optional

from .backends import ConversationBackend, InMemoryBackend
from .models import ConversationRecord, MemorySnippet, StoredMessage, utc_now

logger = logging.getLogger(__name__)

MEMORY_KEYWORDS = (
    "重要", "记住", "下次", "以后", "姓名", "喜欢", "不喜欢", "生日", "工作", "家庭",
    "remember", "next time", "my name", "birthday",
)

USER_SNIPPET_IMPORTANCE = 0.8
REPLY_SNIPPET_IMPORTANCE = 0.7

TOPIC_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("诗", "文学"), "文学创作"),
    (("技术", "发明"), "技术创新"),
    (("哲学", "人生"), "哲学思考"),
    (("策略", "计划"), "策略规划"),
    (("感情", "情感"), "情感交流"),
    (("学习", "知识"), "学习成长"),
]


def _mentions_keyword(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in MEMORY_KEYWORDS)


def extract_memory_snippets(user_message: str, reply: str) -> list[MemorySnippet]:
    """Keyword scan over one turn. Approximate on purpose, no semantics."""
    snippets = []
    if _mentions_keyword(user_message):
        snippets.append(MemorySnippet(
            content=f"用户提到：{user_message}",
            importance=USER_SNIPPET_IMPORTANCE,
            context="用户重要信息",
        ))
    if _mentions_keyword(reply):
        snippets.append(MemorySnippet(
            content=f"我回复：{reply}",
            importance=REPLY_SNIPPET_IMPORTANCE,
            context="AI重要回复",
        ))
    return snippets


def extract_topics(messages: list[StoredMessage], max_topics: int = 3) -> list[str]:
    topics: list[str] = []
    for msg in messages:
        content = msg.content.lower()
        for keywords, topic in TOPIC_KEYWORDS:
            if topic not in topics and any(k in content for k in keywords):
                topics.append(topic)
    return topics[:max_topics]


class ConversationStore:
    def __init__(
        self,
        backend: Optional[ConversationBackend] = None,
        history_limit: int = 20,
        memory_limit: int = 10,
        clock: Callable[[], str] = utc_now,
    ):
        self.backend = backend if backend is not None else InMemoryBackend()
        self.history_limit = max(1, history_limit)
        self.memory_limit = max(1, memory_limit)
        self.clock = clock

    def _load(self, role_id: str, session_id: str) -> Optional[ConversationRecord]:
        try:
            row = self.backend.fetch(role_id, session_id)
        except Exception as e:
            logger.error("Failed to read conversation %s/%s: %s", role_id, session_id, e)
            return None
        if row is None:
            return None
        try:
            return ConversationRecord.from_row(role_id, session_id, row)
        except (ValueError, TypeError, AttributeError) as e:
            # unreadable rows read as empty; the next write replaces them
            logger.error("Corrupt conversation record %s/%s: %s", role_id, session_id, e)
            return None

    def _load_or_new(self, role_id: str, session_id: str) -> ConversationRecord:
        record = self._load(role_id, session_id)
        if record is None:
            now = self.clock()
            record = ConversationRecord(role_id=role_id, session_id=session_id, created_at=now, updated_at=now)
        return record

    def _save(self, record: ConversationRecord, operation: str) -> None:
        record.updated_at = self.clock()
        try:
            self.backend.save(record.role_id, record.session_id, record.to_row())
        except Exception as e:
            logger.error(
                "Failed to %s for %s/%s: %s", operation, record.role_id, record.session_id, e
            )

    def get_record(self, role_id: str, session_id: str) -> Optional[ConversationRecord]:
        return self._load(role_id, session_id)

    def get_history(self, role_id: str, session_id: str, limit: Optional[int] = None) -> list[StoredMessage]:
        record = self._load(role_id, session_id)
        if record is None:
            return []
        if limit is not None:
            return record.messages[-limit:] if limit > 0 else []
        return record.messages

    def append_message(self, role_id: str, session_id: str, message: StoredMessage) -> None:
        record = self._load_or_new(role_id, session_id)
        record.messages = (record.messages + [message])[-self.history_limit:]
        record.last_message_at = message.timestamp or self.clock()
        if message.user_id and not record.user_id:
            record.user_id = message.user_id
        self._save(record, "append message")

    def get_memory_snippets(self, role_id: str, session_id: str, limit: Optional[int] = None) -> list[MemorySnippet]:
        record = self._load(role_id, session_id)
        if record is None:
            return []
        if limit is not None:
            return record.memory_snippets[:limit]
        return record.memory_snippets

    def append_memory_snippet(self, role_id: str, session_id: str, snippet: MemorySnippet) -> None:
        record = self._load_or_new(role_id, session_id)
        snippets = sorted(
            record.memory_snippets + [snippet],
            key=lambda s: s.importance,
            reverse=True,
        )
        record.memory_snippets = snippets[:self.memory_limit]
        self._save(record, "append memory snippet")

    def build_system_prompt_with_memory(self, role_id: str, session_id: str, base_prompt: str) -> str:
        snippets = self.get_memory_snippets(role_id, session_id)
        if not snippets:
            return base_prompt

        memory_text = "\n".join(f"- {snippet.content}" for snippet in snippets)
        return (
            f"{base_prompt}\n\n"
            f"你的记忆片段：\n{memory_text}\n\n"
            f"请根据这些记忆保持角色的一致性和连续性。"
        )

    def get_summary(self, role_id: str, session_id: str) -> Optional[str]:
        record = self._load(role_id, session_id)
        return record.conversation_summary if record else None

    def update_summary(self, role_id: str, session_id: str, summary: str) -> None:
        record = self._load(role_id, session_id)
        if record is None:
            return
        record.conversation_summary = summary
        self._save(record, "update summary")

    def refresh_summary(self, role_id: str, session_id: str) -> Optional[str]:
        history = self.get_history(role_id, session_id)
        if len(history) < 3:
            return None
        topics = extract_topics(history[-5:])
        if not topics:
            return None
        summary = f"当前讨论的主要话题：{'、'.join(topics)}"
        self.update_summary(role_id, session_id, summary)
        return summary

    def record_turn(
        self,
        role_id: str,
        session_id: str,
        user_message: str,
        reply: str,
        user_id: Optional[str] = None,
    ) -> None:
        """Persist one exchange and whatever it contains worth remembering."""
        self.append_message(role_id, session_id, StoredMessage(
            content=user_message,
            is_user=True,
            timestamp=self.clock(),
            user_id=user_id,
        ))
        self.append_message(role_id, session_id, StoredMessage(
            content=reply,
            is_user=False,
            timestamp=self.clock(),
            role_id=role_id,
        ))

        for snippet in extract_memory_snippets(user_message, reply):
            self.append_memory_snippet(role_id, session_id, snippet)

        self.refresh_summary(role_id, session_id)

    def clear(self, role_id: str, session_id: str) -> None:
        try:
            self.backend.delete(role_id, session_id)
        except Exception as e:
            logger.error("Failed to clear conversation %s/%s: %s", role_id, session_id, e)

    def get_stats(self, role_id: str, session_id: str) -> dict:
        record = self._load(role_id, session_id)
        if record is None:
            return {"message_count": 0, "memory_snippets": 0, "has_summary": False, "last_message_at": ""}
        return record.get_stats()
