"""
Terminal rendering for role replies, built on rich.
"""

from collections import deque
from typing import Deque

from rich.box import ROUNDED
from rich.console import Console, RenderableType
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from .orchestration import ReplyOutcome, Role

console = Console()


class RoundMonitor:
    """Shows which roles are still thinking during a group round."""
    def __init__(self, roles: list[Role]):
        self.pending: dict[str, str] = {role.name: role.avatar_url for role in roles}
        self.done: Deque[str] = deque(maxlen=3)
        self.spinner = Spinner("dots", style="cyan")

    def mark_done(self, role_name: str):
        self.pending.pop(role_name, None)
        self.done.append(role_name)

    def __rich__(self) -> RenderableType:
        table = Table(box=None, show_header=False, padding=(0, 2))
        table.add_column("Status", width=3)
        table.add_column("Role")

        for name, avatar in self.pending.items():
            table.add_row(self.spinner, f"{avatar} {name}")
        for name in self.done:
            table.add_row(Text("✓", style="green"), Text(name, style="dim"))

        return Panel(table, title="[bold]群聊进行中[/bold]", border_style="blue", box=ROUNDED)


class RoleChatUI:
    def print_banner(self):
        banner = """
[bold blue]╭──────────────────────────────────────────────╮[/bold blue]
[bold blue]│[/bold blue]                                              [bold blue]│[/bold blue]
[bold blue]│[/bold blue]    [bold cyan]七 子 群 聊   ·   sevensons[/bold cyan]                [bold blue]│[/bold blue]
[bold blue]│[/bold blue]    [white]与李白、孙悟空、诸葛亮们一起聊天[/white]          [bold blue]│[/bold blue]
[bold blue]│[/bold blue]                                              [bold blue]│[/bold blue]
[bold blue]╰──────────────────────────────────────────────╯[/bold blue]
"""
        console.print(banner)

    def create_round_monitor(self, roles: list[Role]) -> RoundMonitor:
        return RoundMonitor(roles)

    def live(self, renderable: RenderableType) -> Live:
        return Live(renderable, console=console, refresh_per_second=10, transient=True)

    def print_reply(self, outcome: ReplyOutcome):
        style = "blue" if outcome.succeeded else "yellow"
        title = f"{outcome.avatar} {outcome.role_name}"
        subtitle = None
        if outcome.used_fallback:
            subtitle = "[dim]离线回复[/dim]"
        console.print(Panel(
            Markdown(outcome.content),
            title=f"[bold {style}]{title}[/bold {style}]",
            title_align="left",
            subtitle=subtitle,
            subtitle_align="right",
            border_style=style,
            box=ROUNDED,
            padding=(0, 1),
        ))

    def print_round(self, outcomes: list[ReplyOutcome]):
        for outcome in outcomes:
            self.print_reply(outcome)

    def print_roles(self, roles: list[Role], current: str = ""):
        table = Table(title="角色", show_header=True, header_style="bold cyan")
        table.add_column("", width=2)
        table.add_column("名称", style="yellow")
        table.add_column("简介")
        table.add_column("模型", style="green")
        table.add_column("状态")

        for role in roles:
            marker = "▶" if role.name == current else ""
            cfg = role.completion_config
            model = f"{cfg.provider}/{cfg.model}" if cfg else "-"
            state = "[green]在线[/green]" if role.is_active else "[dim]停用[/dim]"
            table.add_row(marker, f"{role.avatar_url} {role.name}", role.description, model, state)

        console.print(table)

    def print_memory(self, role_name: str, stats: dict, summary: str = ""):
        lines = [
            f"消息数: {stats['message_count']}",
            f"记忆片段: {stats['memory_snippets']}",
            f"最近消息: {stats['last_message_at'] or '-'}",
        ]
        if summary:
            lines.append(summary)
        console.print(Panel("\n".join(lines), title=f"[cyan]{role_name} 的记忆[/cyan]", border_style="cyan"))

    def print_error(self, error: str):
        console.print()
        console.print(f"[red]╭─ ✗ Error ─{'─' * 36}[/red]")
        for line in error.split("\n")[:10]:
            console.print(f"[red]│[/red] {line[:90]}")
        console.print(f"[red]╰──────────────────────────────────────────────[/red]")


ui = RoleChatUI()
