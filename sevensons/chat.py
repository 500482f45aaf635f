"""
Interactive chat session: one user talking to one role or to the whole group.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional

from .errors import ValidationError
from .orchestration import ReplyOutcome, Role
from .service import ChatService
from .ui import console, ui


@dataclass
class ChatSession:
    service: ChatService
    session_id: str = field(default_factory=lambda: f"cli-{uuid.uuid4().hex[:12]}")
    user_id: Optional[str] = None
    current_role: Optional[Role] = None

    @property
    def mode_label(self) -> str:
        return self.current_role.name if self.current_role else "群聊"

    def set_role(self, name: str) -> Role:
        role = self.service.registry.get_by_name(name)
        if role is None:
            raise ValidationError(f"未找到角色: {name}", status_code=404)
        self.current_role = role
        return role

    def set_group(self):
        self.current_role = None

    async def process_message(self, user_input: str) -> list[ReplyOutcome]:
        if self.current_role is not None:
            outcome = await self.service.orchestrator.respond(
                user_input, self.session_id, self.current_role, self.user_id
            )
            ui.print_reply(outcome)
            return [outcome]

        orchestrator = self.service.orchestrator
        roles = orchestrator.participants_for(user_input)
        if not roles:
            ui.print_error("没有可用的AI角色")
            return []

        monitor = ui.create_round_monitor(roles)
        with ui.live(monitor):
            outcomes = await orchestrator.run_round(
                user_input, self.session_id, roles, self.user_id,
                on_outcome=lambda outcome: monitor.mark_done(outcome.role_name),
            )
        ui.print_round(outcomes)
        return outcomes

    def clear_history(self):
        if self.current_role is not None:
            self.service.clear(self.current_role.id, self.session_id)
        else:
            self.service.clear_session(self.session_id)

    def show_memory_stats(self):
        roles = [self.current_role] if self.current_role else self.service.registry.list_participants()
        store = self.service.store
        shown = 0
        for role in roles:
            stats = store.get_stats(role.id, self.session_id)
            if not stats["message_count"]:
                continue
            ui.print_memory(role.name, stats, store.get_summary(role.id, self.session_id) or "")
            shown += 1
        if not shown:
            console.print("[dim]暂无记忆[/dim]")
