import asyncio
from typing import Optional

import pytest

from sevensons import stats
from sevensons.clients import BaseClient, Message, MessageRole
from sevensons.config import OrchestratorConfig
from sevensons.memory import ConversationStore
from sevensons.orchestration import CompletionConfig, ResponseOrchestrator, Role, RoleRegistry

VALID_OPENAI_KEY = "sk-" + "a" * 40


class FakeClient(BaseClient):
    """Completion client that answers from a script and records every call."""

    def __init__(
        self,
        name: str,
        reply: Optional[str] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        events: Optional[list] = None,
    ):
        self.name = name
        self.reply = reply if reply is not None else f"{name} 的回复"
        self.delay = delay
        self.error = error
        self.events = events if events is not None else []
        self.calls: list[list[Message]] = []
        self.closed = False

    async def chat(self, messages, max_tokens=1000, temperature=0.7):
        self.calls.append(list(messages))
        self.events.append(("start", self.name))
        if self.delay:
            await asyncio.sleep(self.delay)
        self.events.append(("end", self.name))
        if self.error is not None:
            raise self.error
        return Message(role=MessageRole.ASSISTANT, content=self.reply)

    async def aclose(self):
        self.closed = True

    @property
    def last_prompt(self) -> str:
        return self.calls[-1][-1].content

    @property
    def system_prompt(self) -> str:
        return self.calls[-1][0].content


class FakeClientFactory:
    """Hands out one FakeClient per role. Roles are told apart by model name."""

    def __init__(self):
        self.events: list = []
        self.clients: dict[str, FakeClient] = {}

    def add(self, role_id: str, **kwargs) -> FakeClient:
        client = FakeClient(role_id, events=self.events, **kwargs)
        self.clients[f"model-{role_id}"] = client
        return client

    def __call__(self, source):
        if source.model not in self.clients:
            self.add(source.model[len("model-"):])
        return self.clients[source.model]


def make_role(
    role_id: str,
    name: Optional[str] = None,
    api_key: Optional[str] = VALID_OPENAI_KEY,
    provider: str = "openai",
    **kwargs,
) -> Role:
    return Role(
        id=role_id,
        name=name or role_id,
        description=f"{role_id} 的描述",
        personality="沉稳",
        completion_config=CompletionConfig(
            provider=provider,
            model=f"model-{role_id}",
            api_key=api_key,
        ),
        **kwargs,
    )


@pytest.fixture(autouse=True)
def clean_stats():
    stats.reset_stats()
    yield
    stats.reset_stats()


@pytest.fixture
def factory():
    return FakeClientFactory()


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def build_orchestrator(factory, store):
    def _build(roles: list[Role], **config_kwargs) -> ResponseOrchestrator:
        config = OrchestratorConfig(**config_kwargs)
        registry = RoleRegistry(roles, config)
        return ResponseOrchestrator(registry, store, config=config, client_factory=factory)

    return _build
