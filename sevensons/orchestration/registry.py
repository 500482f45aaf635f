"""
Role catalog and completion-credential resolution.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from ..config import OrchestratorConfig
from .roles import DEFAULT_MAX_TOKENS, DEFAULT_MODEL, DEFAULT_PROVIDER, DEFAULT_TEMPERATURE, Role

logger = logging.getLogger(__name__)

PLACEHOLDER_MARKERS = ("your_", "your-api-key", "test-demo-key", "sk-test-")

# provider -> (required prefix, minimum length)
KEY_RULES: dict[str, tuple[str, int]] = {
    "openai": ("sk-", 20),
    "anthropic": ("sk-ant-", 20),
    "chatanywhere": ("sk-", 10),
    "dmxapi": ("", 10),
}


@dataclass(frozen=True)
class CompletionSource:
    provider: str
    api_key: str
    host: Optional[str]
    model: str
    temperature: float
    max_tokens: int
    system_prompt: str
    credential_origin: str = "role"


@dataclass(frozen=True)
class DemoFallback:
    reason: str


def is_valid_api_key(provider: str, api_key: Optional[str]) -> bool:
    if not api_key or not api_key.strip():
        return False
    if any(marker in api_key for marker in PLACEHOLDER_MARKERS):
        return False

    rule = KEY_RULES.get(provider)
    if rule is None:
        return False

    prefix, min_length = rule
    return api_key.startswith(prefix) and len(api_key) >= min_length


class RoleRegistry:
    def __init__(self, roles: Iterable[Role], config: Optional[OrchestratorConfig] = None):
        self._roles: list[Role] = list(roles)
        self.config = config or OrchestratorConfig()

    def all_roles(self) -> list[Role]:
        return list(self._roles)

    def list_participants(self) -> list[Role]:
        return [role for role in self._roles if role.is_active]

    def get_by_name(self, name: str) -> Optional[Role]:
        for role in self._roles:
            if role.name == name:
                return role
        return None

    def get_by_id(self, role_id: str) -> Optional[Role]:
        for role in self._roles:
            if role.id == role_id:
                return role
        return None

    def resolve_completion_source(self, role: Role) -> Union[CompletionSource, DemoFallback]:
        if self.config.demo_mode:
            return DemoFallback("demo mode")

        completion = role.completion_config
        provider = (completion.provider if completion else DEFAULT_PROVIDER) or DEFAULT_PROVIDER
        provider = provider.lower()

        if provider not in KEY_RULES:
            return DemoFallback(f"unknown provider {provider}")

        role_key = completion.api_key if completion else None
        shared = self.config.credential_for(provider)

        if is_valid_api_key(provider, role_key):
            api_key = role_key
            host = (completion.host if completion else None) or self.config.host_for(provider)
            origin = "role"
        elif is_valid_api_key(provider, shared.api_key):
            api_key = shared.api_key
            host = self.config.host_for(provider)
            origin = "config"
        else:
            return DemoFallback(f"no valid {provider} credential")

        return CompletionSource(
            provider=provider,
            api_key=api_key,
            host=host,
            model=(completion.model if completion else None) or DEFAULT_MODEL,
            temperature=completion.temperature if completion else DEFAULT_TEMPERATURE,
            max_tokens=(completion.max_tokens if completion else None) or DEFAULT_MAX_TOKENS,
            system_prompt=(completion.system_prompt if completion else "") or "",
            credential_origin=origin,
        )

    def select_responders(self, message: str, roles: Optional[list[Role]] = None) -> list[Role]:
        """Roles the message is relevant to; every role when none match."""
        candidates = self.list_participants() if roles is None else roles
        text = message.lower()
        selected = []

        for role in candidates:
            name = role.name.lower()
            if name in text or f"@{name}" in text:
                logger.debug("%s: mentioned by name", role.name)
                selected.append(role)
                continue

            if any(s.lower() in text for s in role.specialties):
                logger.debug("%s: matched specialty", role.name)
                selected.append(role)
                continue

            matched = [k for k in role.keywords if k in text]
            if matched:
                logger.debug("%s: matched keywords %s", role.name, ", ".join(matched))
                selected.append(role)

        return selected or list(candidates)
