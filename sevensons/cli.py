"""
Main CLI entry point for sevensons.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from rich.panel import Panel
from rich.prompt import Prompt

from . import stats
from .chat import ChatSession
from .config import Config, create_sample_config, get_config_path, load_config
from .errors import SevenSonsError
from .log import setup_logging
from .service import ChatService
from .ui import console, ui

logger = logging.getLogger(__name__)


def print_help():
    help_text = """
[bold]命令:[/bold]
  [cyan]/help[/cyan]         - 显示帮助
  [cyan]/roles[/cyan]        - 列出角色
  [cyan]/role <名称>[/cyan]  - 与单个角色私聊
  [cyan]/group[/cyan]        - 回到群聊
  [cyan]/clear[/cyan]        - 清空当前对话记忆
  [cyan]/memory[/cyan]       - 记忆统计
  [cyan]/stats[/cyan]        - API统计
  [cyan]/config[/cyan]       - 当前配置
  [cyan]/exit[/cyan]         - 退出

[bold]说明:[/bold]
  群聊时角色分批回答，后一批能看到前一批的发言。
  未配置有效密钥的角色会使用离线回复。
"""
    console.print(Panel(help_text, title="[bold blue] Help [/bold blue]", border_style="blue"))


def show_config(config: Config):
    providers = config.get_configured_providers()
    config_text = f"""
[bold]配置:[/bold]
  配置文件: [cyan]{get_config_path()}[/cyan]
  演示模式: [cyan]{config.demo_mode}[/cyan]
  已配置服务商: [cyan]{', '.join(providers) or '无'}[/cyan]
  批大小: [cyan]{config.batch_size}[/cyan]
  单角色超时: [cyan]{config.request_timeout_ms}ms[/cyan]
  批间隔: [cyan]{config.batch_delay_ms}ms[/cyan]
  展示延迟: [cyan]{config.first_message_delay_ms}ms + {config.per_role_delay_ms}ms/角色[/cyan]
  历史上限: [cyan]{config.history_limit}[/cyan]
  记忆上限: [cyan]{config.memory_limit}[/cyan]
  存储: [cyan]{config.db_path or '内存'}[/cyan]
"""
    console.print(Panel(config_text, title="配置", border_style="cyan"))


async def handle_command(user_input: str, session: ChatSession, config: Config) -> bool:
    """Run one slash command. Returns False when the REPL should stop."""
    parts = user_input.split(maxsplit=1)
    command = parts[0].lower()

    if command in ("/exit", "/quit", "/q"):
        console.print("[cyan]再会! 👋[/cyan]")
        return False
    elif command == "/help":
        print_help()
    elif command == "/roles":
        current = session.current_role.name if session.current_role else ""
        ui.print_roles(session.service.registry.all_roles(), current)
    elif command == "/role":
        if len(parts) < 2:
            console.print("[yellow]用法: /role <名称>[/yellow]")
        else:
            try:
                role = session.set_role(parts[1].strip())
                console.print(f"[green]已切换到与 {role.avatar_url} {role.name} 私聊[/green]")
            except SevenSonsError as e:
                console.print(f"[red]{e}[/red]")
    elif command == "/group":
        session.set_group()
        console.print("[green]已切换到群聊[/green]")
    elif command == "/clear":
        session.clear_history()
        console.print("[green]已清空对话记忆[/green]")
    elif command == "/memory":
        session.show_memory_stats()
    elif command == "/stats":
        s = stats.get_stats()
        console.print(Panel(s.get_summary(), title="[yellow]API调用统计[/yellow]", border_style="yellow"))
    elif command == "/config":
        show_config(config)
    else:
        console.print(f"[red]未知命令: {command}[/red]")
        console.print("[dim]输入 /help 查看命令[/dim]")
    return True


async def run_interactive(session: ChatSession, config: Config):
    ui.print_banner()

    if config.demo_mode:
        console.print("[dim blue]│[/dim blue] [yellow]演示模式: 所有角色使用离线回复[/yellow]")
    console.print(f"[dim blue]│[/dim blue] Session: [cyan]{session.session_id}[/cyan]")
    console.print("[dim blue]│[/dim blue] Type [yellow]/help[/yellow] for commands")
    console.print("[dim blue]╰────────────────────────────────────────────────────[/dim blue]\n")

    try:
        while True:
            try:
                console.print()
                user_input = Prompt.ask(f"[bold green]{session.mode_label} >[/bold green]").strip()

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    if not await handle_command(user_input, session, config):
                        break
                else:
                    await session.process_message(user_input)

            except KeyboardInterrupt:
                console.print("\n[cyan]输入 /exit 退出[/cyan]")
            except EOFError:
                break
    finally:
        await session.service.aclose()


async def run_once(session: ChatSession, prompt: str):
    try:
        await session.process_message(prompt)
    finally:
        await session.service.aclose()


def serve(service: ChatService, host: str, port: int):
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(service), host=host, port=port, log_config=None)


def main():
    parser = argparse.ArgumentParser(description="sevensons - multi-persona group chat")
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create a sample configuration file",
    )
    parser.add_argument(
        "--config",
        "-c",
        action="store_true",
        help="Show current configuration",
    )
    parser.add_argument(
        "--config-file",
        type=str,
        help="Path to the configuration file",
    )
    parser.add_argument(
        "--roles",
        action="store_true",
        help="List available roles",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the HTTP API",
    )
    parser.add_argument("--host", type=str, default="127.0.0.1", help="HTTP bind address")
    parser.add_argument("--port", type=int, default=8000, help="HTTP port")
    parser.add_argument(
        "--session",
        "-s",
        type=str,
        help="Session id to continue",
    )
    parser.add_argument(
        "--role",
        "-r",
        type=str,
        help="Chat with a single role instead of the group",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Answer from canned replies, no API calls",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Debug logging",
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        help="Single message to send (non-interactive mode)",
    )

    args = parser.parse_args()

    if args.init:
        config_path = Path(args.config_file) if args.config_file else get_config_path()
        create_sample_config(config_path)
        console.print(f"[green]已创建配置文件 {config_path}[/green]")
        console.print("[dim]请编辑该文件并填入 API 密钥[/dim]")
        return

    config = load_config(Path(args.config_file) if args.config_file else None)
    if args.demo:
        config.demo_mode = True
    if args.verbose:
        config.verbose = True

    setup_logging(config.verbose)

    if args.config:
        show_config(config)
        return

    service = ChatService.from_config(config)

    if args.roles:
        ui.print_roles(service.registry.all_roles())
        return

    if args.serve:
        serve(service, args.host, args.port)
        return

    if not config.demo_mode and not config.get_configured_providers():
        logger.info("No provider keys configured; roles without their own keys will use canned replies")

    session = ChatSession(service)
    if args.session:
        session.session_id = args.session
    if args.role:
        try:
            session.set_role(args.role)
        except SevenSonsError as e:
            ui.print_error(str(e))
            return

    if args.prompt:
        asyncio.run(run_once(session, args.prompt))
    else:
        asyncio.run(run_interactive(session, config))


if __name__ == "__main__":
    main()
