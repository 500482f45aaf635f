"""
Per-round shared state: what earlier batches already said.
Lives only for one user message.
"""

from dataclasses import dataclass, field

from .prompts import augment_message


@dataclass
class RoundContext:
    user_message: str
    session_id: str
    preview_chars: int = 300
    previous_replies: list[tuple[str, str]] = field(default_factory=list)
    batches_completed: int = 0

    def add_reply(self, role_name: str, content: str):
        self.previous_replies.append((role_name, content))

    def augmented_message(self) -> str:
        return augment_message(self.user_message, self.previous_replies, self.preview_chars)

    def complete_batch(self):
        self.batches_completed += 1
