"""
Anthropic Messages API client.
"""

from typing import Any, Optional

import anthropic
import httpx
from anthropic import AsyncAnthropic

from ..errors import ProviderError
from .base import BaseClient, Message, MessageRole


class AnthropicClient(BaseClient):
    provider = "anthropic"

    def __init__(
        self,
        api_key: str,
        model_name: str,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self._client = AsyncAnthropic(
            api_key=api_key,
            base_url=base_url or None,
            max_retries=0,
            http_client=http_client or httpx.AsyncClient(timeout=timeout),
        )

    def _split_messages(self, messages: list[Message]) -> tuple[str, list[dict[str, Any]]]:
        # system prompt travels separately
        system_parts = []
        conversation = []
        for msg in messages:
            if msg.role == MessageRole.SYSTEM:
                system_parts.append(msg.content or "")
            else:
                conversation.append(msg.to_dict())
        return "\n".join(system_parts).strip(), conversation

    async def chat(
        self,
        messages: list[Message],
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> Message:
        system_content, conversation = self._split_messages(messages)

        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation,
        }
        if system_content:
            kwargs["system"] = system_content

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            raise ProviderError(
                f"anthropic API 调用失败: HTTP {e.status_code}",
                provider=self.provider,
                status_code=e.status_code,
            ) from e
        except anthropic.APIError as e:
            raise ProviderError(f"anthropic API 调用失败: {e}", provider=self.provider) from e

        text = "".join(
            block.text for block in (response.content or [])
            if getattr(block, "type", None) == "text"
        )
        if not text:
            raise ProviderError("anthropic 返回内容为空", provider=self.provider)

        return Message(role=MessageRole.ASSISTANT, content=text)

    async def aclose(self) -> None:
        await self._client.close()
