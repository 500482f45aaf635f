"""
Multi-role response orchestrator.

One user message fans out to the participating roles in fixed-size
batches. Roles within a batch run concurrently and cannot see each other;
every later batch gets a preview of what earlier batches said. A role that
fails, times out or has no credentials degrades to canned text and never
takes the round down with it.
"""

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Optional

from .. import stats
from ..clients import BaseClient, Message, MessageRole, create_client
from ..config import OrchestratorConfig
from ..errors import CompletionTimeout, ConfigurationError, ProviderError
from ..memory import ConversationStore
from ..memory.models import utc_now
from .aggregator import ReplyOutcome, ResultAggregator
from .demo import FALLBACK_APOLOGY, generate_demo_reply
from .prompts import build_system_prompt
from .registry import CompletionSource, DemoFallback, RoleRegistry
from .roles import Role
from .state import RoundContext

logger = logging.getLogger(__name__)

ClientFactory = Callable[[CompletionSource], BaseClient]


def partition(roles: list[Role], batch_size: int) -> list[list[Role]]:
    size = max(1, batch_size)
    return [roles[i:i + size] for i in range(0, len(roles), size)]


class ResponseOrchestrator:
    def __init__(
        self,
        registry: RoleRegistry,
        store: ConversationStore,
        config: Optional[OrchestratorConfig] = None,
        client_factory: ClientFactory = create_client,
        clock: Callable[[], str] = utc_now,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.registry = registry
        self.store = store
        self.config = config or registry.config
        self.client_factory = client_factory
        self.clock = clock
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.aggregator = ResultAggregator(
            first_message_delay_ms=self.config.first_message_delay_ms,
            per_role_delay_ms=self.config.per_role_delay_ms,
        )
        self._clients: dict[CompletionSource, BaseClient] = {}

    def participants_for(self, message: str) -> list[Role]:
        roles = self.registry.list_participants()
        if self.config.respond_only_relevant:
            roles = self.registry.select_responders(message, roles)
        return roles

    async def run_round(
        self,
        message: str,
        session_id: str,
        roles: Optional[list[Role]] = None,
        user_id: Optional[str] = None,
        on_outcome: Optional[Callable[[ReplyOutcome], None]] = None,
    ) -> list[ReplyOutcome]:
        if roles is None:
            roles = self.participants_for(message)

        context = RoundContext(
            user_message=message,
            session_id=session_id,
            preview_chars=self.config.preview_chars,
        )
        outcomes: list[ReplyOutcome] = []
        batches = partition(roles, self.config.batch_size)

        for batch_idx, batch in enumerate(batches):
            if batch_idx > 0 and self.config.batch_delay_ms > 0:
                await self.sleep(self.config.batch_delay_ms / 1000)

            prompt = context.augmented_message()
            logger.info(
                "Batch %d/%d: %s",
                batch_idx + 1, len(batches), ", ".join(role.name for role in batch),
            )

            results = await asyncio.gather(
                *(self._respond(role, prompt, context, user_id) for role in batch),
                return_exceptions=True,
            )

            for role, result in zip(batch, results):
                if isinstance(result, Exception):
                    logger.error("Role %s failed outside the completion call: %s", role.name, result)
                    result = self._fallback_outcome(role, str(result))
                outcomes.append(result)
                context.add_reply(role.name, result.content)
                if on_outcome is not None:
                    on_outcome(result)

            context.complete_batch()

        stats.record_round()
        logger.info(self.aggregator.summarize(outcomes))
        return self.aggregator.annotate_delays(outcomes)

    async def respond(
        self,
        message: str,
        session_id: str,
        role: Role,
        user_id: Optional[str] = None,
    ) -> ReplyOutcome:
        outcomes = await self.run_round(message, session_id, [role], user_id)
        return outcomes[0]

    async def _respond(
        self,
        role: Role,
        prompt: str,
        context: RoundContext,
        user_id: Optional[str],
    ) -> ReplyOutcome:
        start_time = time.monotonic()
        source = self.registry.resolve_completion_source(role)

        if isinstance(source, DemoFallback):
            logger.debug("%s answers from templates: %s", role.name, source.reason)
            outcome = self._demo_outcome(role, source.reason)
        else:
            try:
                content = await self._complete(role, source, prompt, context.session_id)
                outcome = ReplyOutcome(
                    role_id=role.id,
                    role_name=role.name,
                    avatar=role.avatar_url,
                    content=content,
                    timestamp=self.clock(),
                    succeeded=True,
                )
            except ConfigurationError as e:
                logger.warning("%s has unusable provider config: %s", role.name, e)
                outcome = self._demo_outcome(role, str(e))
            except CompletionTimeout as e:
                logger.warning("%s (%s) timed out after %dms", role.name, source.provider, e.timeout_ms)
                stats.record_fallback(role.name, timed_out=True)
                outcome = self._fallback_outcome(role, str(e), count=False)
            except ProviderError as e:
                logger.warning("%s (%s) provider error: %s", role.name, source.provider, e)
                stats.record_fallback(role.name)
                outcome = self._fallback_outcome(role, str(e), count=False)
            except Exception as e:
                logger.warning("%s (%s) call failed: %s", role.name, source.provider, e)
                stats.record_fallback(role.name)
                outcome = self._fallback_outcome(role, str(e), count=False)

        outcome.execution_time = time.monotonic() - start_time
        self.store.record_turn(role.id, context.session_id, context.user_message, outcome.content, user_id)
        return outcome

    async def _complete(self, role: Role, source: CompletionSource, prompt: str, session_id: str) -> str:
        summary = self.store.get_summary(role.id, session_id)
        system_prompt = build_system_prompt(role, knowledge=source.system_prompt, summary=summary)
        system_prompt = self.store.build_system_prompt_with_memory(role.id, session_id, system_prompt)

        history = self.store.get_history(role.id, session_id, limit=self.config.history_window)

        messages = [Message(role=MessageRole.SYSTEM, content=system_prompt)]
        messages.extend(
            Message(role=MessageRole.USER if m.is_user else MessageRole.ASSISTANT, content=m.content)
            for m in history
        )
        messages.append(Message(role=MessageRole.USER, content=prompt))

        client = self._client_for(source)
        stats.record_call(role.name)
        timeout_ms = self.config.request_timeout_ms

        try:
            response = await asyncio.wait_for(
                client.chat(messages, max_tokens=source.max_tokens, temperature=source.temperature),
                timeout=timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            raise CompletionTimeout(timeout_ms) from None

        if not response.content:
            raise ProviderError("empty completion", provider=source.provider)
        return response.content

    def _client_for(self, source: CompletionSource) -> BaseClient:
        client = self._clients.get(source)
        if client is None:
            client = self.client_factory(source)
            self._clients[source] = client
        return client

    def _demo_outcome(self, role: Role, reason: str) -> ReplyOutcome:
        stats.record_fallback(role.name)
        return ReplyOutcome(
            role_id=role.id,
            role_name=role.name,
            avatar=role.avatar_url,
            content=generate_demo_reply(role, self.rng),
            timestamp=self.clock(),
            succeeded=False,
            error_detail=reason,
            used_fallback=True,
        )

    def _fallback_outcome(self, role: Role, error: str, count: bool = True) -> ReplyOutcome:
        if count:
            stats.record_fallback(role.name)
        return ReplyOutcome(
            role_id=role.id,
            role_name=role.name,
            avatar=role.avatar_url,
            content=FALLBACK_APOLOGY,
            timestamp=self.clock(),
            succeeded=False,
            error_detail=error,
            used_fallback=True,
        )

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
