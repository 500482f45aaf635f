"""
Request-level entry points shared by the HTTP API and the CLI.
"""

import logging
from typing import Optional

from .clients import create_client
from .config import Config
from .errors import SevenSonsError, ValidationError
from .memory import ConversationStore, InMemoryBackend, SQLiteBackend
from .orchestration import ResponseOrchestrator, RoleRegistry, build_roster
from .orchestration.orchestrator import ClientFactory

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, orchestrator: ResponseOrchestrator):
        self.orchestrator = orchestrator
        self.registry = orchestrator.registry
        self.store = orchestrator.store

    @classmethod
    def from_config(cls, config: Config, client_factory: ClientFactory = create_client) -> "ChatService":
        orchestrator_config = config.orchestrator_config()
        registry = RoleRegistry(build_roster(config.role_configs), orchestrator_config)
        backend = SQLiteBackend(config.db_path) if config.db_path else InMemoryBackend()
        store = ConversationStore(
            backend=backend,
            history_limit=orchestrator_config.history_limit,
            memory_limit=orchestrator_config.memory_limit,
        )
        orchestrator = ResponseOrchestrator(
            registry=registry,
            store=store,
            config=orchestrator_config,
            client_factory=client_factory,
        )
        return cls(orchestrator)

    async def chat(
        self,
        message: Optional[str],
        role_name: Optional[str],
        session_id: Optional[str],
        user_id: Optional[str] = None,
    ) -> dict:
        if not message or not role_name or not session_id:
            raise ValidationError("缺少必要参数: message, roleName, sessionId")

        role = self.registry.get_by_name(role_name)
        if role is None:
            raise ValidationError(f"未找到角色: {role_name}", status_code=404)

        logger.info("Chat with %s, session %s, %d chars", role.name, session_id, len(message))
        outcome = await self.orchestrator.respond(message, session_id, role, user_id)

        data = {
            "content": outcome.content,
            "role": role.name,
            "timestamp": outcome.timestamp,
            "sessionId": session_id,
        }
        if user_id:
            data["userId"] = user_id
        return data

    async def group_chat(
        self,
        message: Optional[str],
        session_id: Optional[str],
        user_id: Optional[str] = None,
    ) -> dict:
        if not message or not session_id:
            raise ValidationError("消息和会话ID不能为空")

        roles = self.orchestrator.participants_for(message)
        if not roles:
            raise SevenSonsError("没有可用的AI角色")

        logger.info("Group chat, session %s, %d roles", session_id, len(roles))
        outcomes = await self.orchestrator.run_round(message, session_id, roles, user_id)
        return self.orchestrator.aggregator.group_payload(outcomes)

    def clear(self, role_id: str, session_id: str) -> None:
        self.store.clear(role_id, session_id)

    def clear_session(self, session_id: str) -> None:
        for role in self.registry.all_roles():
            self.store.clear(role.id, session_id)

    def list_roles(self) -> list[dict]:
        return [role.to_public_dict() for role in self.registry.all_roles()]

    async def aclose(self) -> None:
        await self.orchestrator.aclose()
