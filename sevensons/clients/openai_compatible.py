"""
OpenAI-compatible API client.
Works with OpenAI, ChatAnywhere, DMXapi and other OpenAI-compatible APIs.
"""

from typing import Any, Optional

import httpx
import openai
from openai import AsyncOpenAI

from ..errors import ProviderError
from .base import BaseClient, Message, MessageRole

COMPLETIONS_SUFFIX = "/chat/completions"


def normalize_base_url(host: Optional[str]) -> Optional[str]:
    """Accept host, host/v1 or host/v1/chat/completions; return host/v1."""
    if not host:
        return None
    clean = host.strip().rstrip("/")
    if clean.endswith("/v1" + COMPLETIONS_SUFFIX):
        clean = clean[: -len(COMPLETIONS_SUFFIX)]
    if not clean.endswith("/v1"):
        clean = f"{clean}/v1"
    return clean


class OpenAICompatibleClient(BaseClient):
    def __init__(
        self,
        api_key: str,
        model_name: str,
        base_url: Optional[str] = None,
        provider: str = "openai",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.base_url = normalize_base_url(base_url)
        self.model_name = model_name
        self.provider = provider.lower()

        # no SDK retries: a failed call falls back instead
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            max_retries=0,
            http_client=http_client or httpx.AsyncClient(timeout=timeout),
        )

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        return [msg.to_dict() for msg in messages]

    async def chat(
        self,
        messages: list[Message],
        max_tokens: int = 1000,
        temperature: float = 0.7,
    ) -> Message:
        kwargs: dict[str, Any] = {
            "model": self.model_name,
            "messages": self._convert_messages(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            raise ProviderError(
                f"{self.provider} API 调用失败: HTTP {e.status_code}",
                provider=self.provider,
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            raise ProviderError(f"{self.provider} API 调用失败: {e}", provider=self.provider) from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise ProviderError(f"{self.provider} 返回了空的 choices", provider=self.provider)

        content = choices[0].message.content if choices[0].message else None
        if not content:
            raise ProviderError(f"{self.provider} 返回内容为空", provider=self.provider)

        return Message(role=MessageRole.ASSISTANT, content=content)

    async def aclose(self) -> None:
        await self._client.close()
