"""
Configuration management for sevensons.
Supports a ~/.sevensons YAML file for provider keys, role overrides and
group-chat pacing, with environment variables taking precedence.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "anthropic", "chatanywhere", "dmxapi")

DEFAULT_PROVIDER_HOSTS: dict[str, Optional[str]] = {
    "openai": None,
    "anthropic": None,
    "chatanywhere": "https://api.chatanywhere.tech",
    "dmxapi": "https://www.DMXapi.com",
}

PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "chatanywhere": "CHATANYWHERE_API_KEY",
    "dmxapi": "DMXAPI_API_KEY",
}

PROVIDER_HOST_ENV = {
    "chatanywhere": "CHATANYWHERE_API_HOST",
    "dmxapi": "DMXAPI_API_HOST",
}

TUNABLE_ENV = {
    "batch_size": "GROUP_CHAT_BATCH_SIZE",
    "per_role_delay_ms": "GROUP_CHAT_DELAY_MS",
    "first_message_delay_ms": "GROUP_CHAT_FIRST_DELAY_MS",
    "batch_delay_ms": "GROUP_CHAT_BATCH_DELAY_MS",
    "request_timeout_ms": "GROUP_CHAT_ROLE_TIMEOUT_MS",
}


@dataclass(frozen=True)
class ProviderCredential:
    api_key: Optional[str] = None
    host: Optional[str] = None


@dataclass(frozen=True)
class OrchestratorConfig:
    """Everything the orchestrator and registry read at runtime.

    Built once from Config and passed in explicitly, so credential
    resolution never consults the process environment on its own.
    """

    demo_mode: bool = False
    provider_credentials: Mapping[str, ProviderCredential] = field(default_factory=dict)
    batch_size: int = 3
    per_role_delay_ms: int = 0
    first_message_delay_ms: int = 0
    batch_delay_ms: int = 0
    request_timeout_ms: int = 30000
    history_limit: int = 20
    memory_limit: int = 10
    history_window: int = 10
    preview_chars: int = 300
    respond_only_relevant: bool = False

    def credential_for(self, provider: str) -> ProviderCredential:
        return self.provider_credentials.get(provider, ProviderCredential())

    def host_for(self, provider: str) -> Optional[str]:
        return self.credential_for(provider).host or DEFAULT_PROVIDER_HOSTS.get(provider)


@dataclass
class RoleConfig:
    name: str
    role_id: Optional[str] = None
    description: Optional[str] = None
    personality: Optional[str] = None
    specialties: Optional[list[str]] = None
    avatar_url: Optional[str] = None
    active: Optional[bool] = None
    provider: Optional[str] = None
    api_key: Optional[str] = None
    host: Optional[str] = None
    model_name: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    system_prompt: Optional[str] = None


@dataclass
class Config:
    role_configs: dict[str, RoleConfig] = field(default_factory=dict)
    provider_credentials: dict[str, ProviderCredential] = field(default_factory=dict)
    demo_mode: bool = False
    batch_size: int = 3
    per_role_delay_ms: int = 0
    first_message_delay_ms: int = 0
    batch_delay_ms: int = 0
    request_timeout_ms: int = 30000
    history_limit: int = 20
    memory_limit: int = 10
    respond_only_relevant: bool = False
    db_path: Optional[str] = None
    verbose: bool = False

    def orchestrator_config(self) -> OrchestratorConfig:
        return OrchestratorConfig(
            demo_mode=self.demo_mode,
            provider_credentials=dict(self.provider_credentials),
            batch_size=max(1, self.batch_size),
            per_role_delay_ms=max(0, self.per_role_delay_ms),
            first_message_delay_ms=max(0, self.first_message_delay_ms),
            batch_delay_ms=max(0, self.batch_delay_ms),
            request_timeout_ms=max(1, self.request_timeout_ms),
            history_limit=max(1, self.history_limit),
            memory_limit=max(1, self.memory_limit),
            respond_only_relevant=self.respond_only_relevant,
        )

    def get_configured_providers(self) -> list[str]:
        return [
            provider for provider, cred in self.provider_credentials.items()
            if cred.api_key
        ]


CONFIG_FILE_NAME = ".sevensons"


def get_config_path() -> Path:
    return Path.home() / CONFIG_FILE_NAME


def load_config(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
    config_path = path or get_config_path()
    data: dict = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    config = parse_config(data)
    apply_environment(config, os.environ if environ is None else environ)
    return config


def parse_config(data: dict) -> Config:
    role_configs = {}

    for role_name, role_data in (data.get("roles") or {}).items():
        role_data = role_data or {}
        role_configs[role_name] = RoleConfig(
            name=role_name,
            role_id=role_data.get("id"),
            description=role_data.get("description"),
            personality=role_data.get("personality"),
            specialties=role_data.get("specialties"),
            avatar_url=role_data.get("avatar_url"),
            active=role_data.get("active"),
            provider=role_data.get("provider"),
            api_key=role_data.get("api_key"),
            host=role_data.get("host"),
            model_name=role_data.get("model_name"),
            temperature=role_data.get("temperature"),
            max_tokens=role_data.get("max_tokens"),
            system_prompt=role_data.get("system_prompt"),
        )

    provider_credentials = {}
    for provider, cred in (data.get("providers") or {}).items():
        cred = cred or {}
        provider_credentials[provider.lower()] = ProviderCredential(
            api_key=cred.get("api_key"),
            host=cred.get("host"),
        )

    group_chat = data.get("group_chat") or {}

    return Config(
        role_configs=role_configs,
        provider_credentials=provider_credentials,
        demo_mode=bool(data.get("demo_mode", False)),
        batch_size=_as_int(group_chat.get("batch_size"), 3),
        per_role_delay_ms=_as_int(group_chat.get("per_role_delay_ms"), 0),
        first_message_delay_ms=_as_int(group_chat.get("first_message_delay_ms"), 0),
        batch_delay_ms=_as_int(group_chat.get("batch_delay_ms"), 0),
        request_timeout_ms=_as_int(group_chat.get("request_timeout_ms"), 30000),
        history_limit=_as_int(data.get("history_limit"), 20),
        memory_limit=_as_int(data.get("memory_limit"), 10),
        respond_only_relevant=bool(group_chat.get("respond_only_relevant", False)),
        db_path=data.get("db_path"),
        verbose=bool(data.get("verbose", False)),
    )


def apply_environment(config: Config, environ: Mapping[str, str]) -> None:
    demo = environ.get("DEMO_MODE")
    if demo is not None and demo.strip():
        config.demo_mode = demo.strip().lower() == "true"

    for attr, env_name in TUNABLE_ENV.items():
        if env_name in environ:
            setattr(config, attr, _as_int(environ[env_name], getattr(config, attr)))

    for provider in PROVIDERS:
        key = environ.get(PROVIDER_KEY_ENV[provider])
        host = environ.get(PROVIDER_HOST_ENV.get(provider, ""))
        if not key and not host:
            continue
        current = config.provider_credentials.get(provider, ProviderCredential())
        config.provider_credentials[provider] = ProviderCredential(
            api_key=key or current.api_key,
            host=host or current.host,
        )

    if environ.get("SEVENSONS_DB_PATH"):
        config.db_path = environ["SEVENSONS_DB_PATH"]


def _as_int(value, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer setting %r, using %d", value, default)
        return default


def save_config(config: Config, path: Optional[Path] = None) -> None:
    config_path = path or get_config_path()

    data = {
        "demo_mode": config.demo_mode,
        "history_limit": config.history_limit,
        "memory_limit": config.memory_limit,
        "verbose": config.verbose,
        "group_chat": {
            "batch_size": config.batch_size,
            "per_role_delay_ms": config.per_role_delay_ms,
            "first_message_delay_ms": config.first_message_delay_ms,
            "batch_delay_ms": config.batch_delay_ms,
            "request_timeout_ms": config.request_timeout_ms,
            "respond_only_relevant": config.respond_only_relevant,
        },
        "providers": {},
        "roles": {},
    }

    if config.db_path:
        data["db_path"] = config.db_path

    for provider, cred in config.provider_credentials.items():
        cred_data = {}
        if cred.api_key:
            cred_data["api_key"] = cred.api_key
        if cred.host:
            cred_data["host"] = cred.host
        if cred_data:
            data["providers"][provider] = cred_data

    for role_name, role_config in config.role_configs.items():
        role_data = {}
        for key, value in (
            ("id", role_config.role_id),
            ("description", role_config.description),
            ("personality", role_config.personality),
            ("specialties", role_config.specialties),
            ("avatar_url", role_config.avatar_url),
            ("active", role_config.active),
            ("provider", role_config.provider),
            ("api_key", role_config.api_key),
            ("host", role_config.host),
            ("model_name", role_config.model_name),
            ("temperature", role_config.temperature),
            ("max_tokens", role_config.max_tokens),
            ("system_prompt", role_config.system_prompt),
        ):
            if value is not None:
                role_data[key] = value
        data["roles"][role_name] = role_data

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True)


def create_sample_config(path: Optional[Path] = None) -> None:
    config_path = path or get_config_path()
    if config_path.exists():
        return

    sample_config = """# sevensons configuration
# Copy this file to ~/.sevensons and fill in your API keys.
# Environment variables (OPENAI_API_KEY, DEMO_MODE, GROUP_CHAT_BATCH_SIZE, ...)
# override the values below.

# true: every role answers from its canned replies, no API calls
demo_mode: false

history_limit: 20
memory_limit: 10
# db_path: ~/.sevensons.db

group_chat:
  batch_size: 3
  per_role_delay_ms: 0
  first_message_delay_ms: 0
  batch_delay_ms: 0
  request_timeout_ms: 30000
  respond_only_relevant: false

# Process-wide keys, used when a role has no valid key of its own
providers:
  chatanywhere:
    api_key: "your-api-key"
    host: "https://api.chatanywhere.tech"
  openai:
    api_key: "your-api-key"

# Per-role overrides, keyed by role name
roles:
  李白:
    provider: "chatanywhere"
    model_name: "gpt-3.5-turbo"
    temperature: 0.8
    max_tokens: 1000
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(sample_config)
