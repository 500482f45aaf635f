"""
Simple completion call statistics tracking.
"""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class APICallStats:
    total_calls: int = 0
    calls_by_role: Dict[str, int] = field(default_factory=dict)
    fallbacks_by_role: Dict[str, int] = field(default_factory=dict)
    timeouts_by_role: Dict[str, int] = field(default_factory=dict)
    rounds: int = 0

    def record_call(self, role: str = "unknown"):
        self.total_calls += 1
        self.calls_by_role[role] = self.calls_by_role.get(role, 0) + 1

    def record_fallback(self, role: str = "unknown", timed_out: bool = False):
        self.fallbacks_by_role[role] = self.fallbacks_by_role.get(role, 0) + 1
        if timed_out:
            self.timeouts_by_role[role] = self.timeouts_by_role.get(role, 0) + 1

    def record_round(self):
        self.rounds += 1

    def reset(self):
        self.total_calls = 0
        self.calls_by_role.clear()
        self.fallbacks_by_role.clear()
        self.timeouts_by_role.clear()
        self.rounds = 0

    def get_summary(self) -> str:
        lines = [
            "API调用统计:",
            f"  对话轮次: {self.rounds}",
            f"  总调用次数: {self.total_calls}",
        ]
        if self.calls_by_role:
            lines.append("  按角色:")
            for role, count in self.calls_by_role.items():
                lines.append(f"    {role}: {count}次")
        if self.fallbacks_by_role:
            lines.append("  回退:")
            for role, count in self.fallbacks_by_role.items():
                timeouts = self.timeouts_by_role.get(role, 0)
                suffix = f" (超时 {timeouts}次)" if timeouts else ""
                lines.append(f"    {role}: {count}次{suffix}")
        return "\n".join(lines)


_global_stats = APICallStats()


def get_stats() -> APICallStats:
    return _global_stats


def record_call(role: str = "unknown"):
    _global_stats.record_call(role)


def record_fallback(role: str = "unknown", timed_out: bool = False):
    _global_stats.record_fallback(role, timed_out)


def record_round():
    _global_stats.record_round()


def reset_stats():
    _global_stats.reset()
