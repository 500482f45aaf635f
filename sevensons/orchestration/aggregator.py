"""
Reply outcomes of a round and their presentation payloads.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ReplyOutcome:
    role_id: str
    role_name: str
    content: str
    timestamp: str
    succeeded: bool
    avatar: str = ""
    error_detail: Optional[str] = None
    used_fallback: bool = False
    delay_ms: int = 0
    execution_time: float = 0.0

    def to_group_message(self) -> dict[str, Any]:
        return {
            "id": f"ai-{int(time.time() * 1000)}-{secrets.token_hex(3)}",
            "sender": self.role_name,
            "content": self.content,
            "timestamp": self.timestamp,
            "avatar": self.avatar or "🤖",
            "delay": self.delay_ms,
        }


class ResultAggregator:
    def __init__(self, first_message_delay_ms: int = 0, per_role_delay_ms: int = 0):
        self.first_message_delay_ms = first_message_delay_ms
        self.per_role_delay_ms = per_role_delay_ms

    def annotate_delays(self, outcomes: list[ReplyOutcome]) -> list[ReplyOutcome]:
        for idx, outcome in enumerate(outcomes):
            outcome.delay_ms = self.first_message_delay_ms + idx * self.per_role_delay_ms
        return outcomes

    def group_payload(self, outcomes: list[ReplyOutcome]) -> dict[str, Any]:
        return {"aiResponses": [o.to_group_message() for o in outcomes]}

    def summarize(self, outcomes: list[ReplyOutcome]) -> str:
        live = [o.role_name for o in outcomes if o.succeeded]
        fallback = [o.role_name for o in outcomes if not o.succeeded]
        parts = [f"共 {len(outcomes)} 条回复"]
        if live:
            parts.append(f"实时: {', '.join(live)}")
        if fallback:
            parts.append(f"回退: {', '.join(fallback)}")
        return " | ".join(parts)
