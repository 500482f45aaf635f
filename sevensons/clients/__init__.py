"""
API clients for the completion providers.
openai, chatanywhere and dmxapi speak the OpenAI format; anthropic has its own.
"""

from ..errors import ConfigurationError
from .anthropic_client import AnthropicClient
from .base import BaseClient, Message, MessageRole
from .openai_compatible import OpenAICompatibleClient, normalize_base_url

OPENAI_COMPATIBLE_PROVIDERS = ("openai", "chatanywhere", "dmxapi")


def create_client(source) -> BaseClient:
    """Build a client for a resolved CompletionSource."""
    provider = source.provider.lower()
    if provider in OPENAI_COMPATIBLE_PROVIDERS:
        return OpenAICompatibleClient(
            api_key=source.api_key,
            model_name=source.model,
            base_url=source.host,
            provider=provider,
        )
    if provider == "anthropic":
        return AnthropicClient(
            api_key=source.api_key,
            model_name=source.model,
            base_url=source.host,
        )
    raise ConfigurationError(f"不支持的AI提供商: {source.provider}")


__all__ = [
    "BaseClient",
    "Message",
    "MessageRole",
    "OpenAICompatibleClient",
    "AnthropicClient",
    "normalize_base_url",
    "create_client",
]
