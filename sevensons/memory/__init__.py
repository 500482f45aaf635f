"""
Per-role conversation memory: bounded history, ranked memory snippets,
topic summary.
"""

from .backends import ConversationBackend, InMemoryBackend, SQLiteBackend
from .models import ConversationRecord, MemorySnippet, StoredMessage
from .store import ConversationStore, extract_memory_snippets, extract_topics

__all__ = [
    "ConversationBackend",
    "InMemoryBackend",
    "SQLiteBackend",
    "ConversationRecord",
    "MemorySnippet",
    "StoredMessage",
    "ConversationStore",
    "extract_memory_snippets",
    "extract_topics",
]
