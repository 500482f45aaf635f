"""
Base client interface and data structures.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class MessageRole(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    role: MessageRole
    content: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content or ""}


class BaseClient(ABC):
    provider: str = ""

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> Message:
        """Return the assistant message or raise ProviderError."""

    async def aclose(self) -> None:
        pass
