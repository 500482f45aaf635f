"""
Multi-role conversation orchestration.
Implements role resolution, batched concurrent replies and fallbacks.
"""

from .aggregator import ReplyOutcome, ResultAggregator
from .demo import FALLBACK_APOLOGY, generate_demo_reply
from .orchestrator import ResponseOrchestrator, partition
from .prompts import augment_message, build_system_prompt
from .registry import CompletionSource, DemoFallback, RoleRegistry, is_valid_api_key
from .roles import DEFAULT_ROLES, CompletionConfig, Role, build_roster
from .state import RoundContext

__all__ = [
    "ReplyOutcome",
    "ResultAggregator",
    "FALLBACK_APOLOGY",
    "generate_demo_reply",
    "ResponseOrchestrator",
    "partition",
    "augment_message",
    "build_system_prompt",
    "CompletionSource",
    "DemoFallback",
    "RoleRegistry",
    "is_valid_api_key",
    "DEFAULT_ROLES",
    "CompletionConfig",
    "Role",
    "build_roster",
    "RoundContext",
]
