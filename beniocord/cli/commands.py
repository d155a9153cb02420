"""
CLI 命令模块 - beniocord 的命令行命令定义。

本模块使用 Typer 框架定义以下命令：
- onboard：写入默认配置文件 ~/.beniocord/config.json
- status：查看当前配置（令牌是否设置、服务地址、超时与重试参数）
- watch：连接服务并实时打印推送事件，Ctrl+C 退出

技术栈：
- Typer：CLI 框架（基于 Click，支持类型注解自动生成帮助文档）
- Rich：终端美化输出（表格、颜色）
"""

import asyncio

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from beniocord import __logo__, __version__
from beniocord.utils.helpers import truncate_string

# 创建 Typer 应用实例（CLI 根命令）
app = typer.Typer(
    name="beniocord",
    help=f"{__logo__} beniocord - Beniocord bot client",
    no_args_is_help=True,
)

console = Console()

# watch 命令逐条打印的事件（disconnect / reconnect / error 单独订阅）
WATCH_EVENTS = (
    "messageCreate",
    "messageEdit",
    "messageDelete",
    "memberJoin",
    "memberLeave",
    "presenceUpdate",
    "userStatusUpdate",
    "channelUpdate",
    "channelDelete",
    "typingStart",
    "typingStop",
    "rateLimited",
)


def version_callback(value: bool):
    """打印版本号并退出。"""
    if value:
        console.print(f"{__logo__} beniocord v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """beniocord CLI 根命令回调。"""
    pass


# ============================================================================
# Onboard / Status
# ============================================================================


@app.command()
def onboard():
    """创建默认配置文件。已存在时询问是否覆盖。"""
    from beniocord.config.loader import get_config_path, save_config
    from beniocord.config.schema import Config

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    save_config(Config())
    console.print(f"[green]✓[/green] Created config at {config_path}")

    console.print(f"\n{__logo__} beniocord is ready!")
    console.print("\nNext steps:")
    console.print("  1. Add your bot token to [cyan]~/.beniocord/config.json[/cyan]")
    console.print("     (or export [cyan]BENIOCORD_TOKEN[/cyan])")
    console.print("  2. Watch live events: [cyan]beniocord watch[/cyan]")


@app.command()
def status():
    """显示当前配置。"""
    from beniocord.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()
    conn = config.connection

    console.print(f"{__logo__} beniocord Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"Token: {'[green]✓[/green]' if config.token else '[dim]not set[/dim]'}")

    table = Table(title="Connection")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("API URL", conn.api_url)
    table.add_row("Asset URL", conn.asset_url)
    table.add_row("Connect timeout", f"{conn.connect_timeout_s}s")
    table.add_row("Request timeout", f"{conn.request_timeout_s}s")
    table.add_row("Command timeout", f"{conn.command_timeout_s}s")
    table.add_row("Retries", f"{conn.max_retries} (every {conn.retry_delay_s}s)")
    table.add_row("Heartbeat", f"every {conn.heartbeat_interval_s}s")
    table.add_row("Messages per channel", str(config.cache.message_capacity))
    console.print(table)


# ============================================================================
# Watch
# ============================================================================


def _describe(event: str, args: tuple) -> str:
    if not args:
        return ""
    first = args[0]
    if event == "messageCreate":
        author = first.author.username if first.author else first.author_id
        return f"#{first.channel_id} {author}: {truncate_string(first.content or '', 120)}"
    return str(first)


@app.command()
def watch(
    token: str = typer.Option(None, "--token", "-t", help="Bot token (overrides config)"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show beniocord runtime logs"),
):
    """连接服务并实时打印推送事件。"""
    from beniocord.client import Client
    from beniocord.config.loader import load_config
    from beniocord.errors import BeniocordError

    config = load_config()
    if token:
        config = config.model_copy(update={"token": token})
    if not config.token:
        console.print("[red]Error: No bot token configured.[/red]")
        console.print("Set token in ~/.beniocord/config.json or pass --token")
        raise typer.Exit(1)

    if logs:
        logger.enable("beniocord")
    else:
        logger.disable("beniocord")

    client = Client(config)

    def printer(event: str):
        def show(*args):
            console.print(f"[cyan]{event}[/cyan] {_describe(event, args)}")
        return show

    for event in WATCH_EVENTS:
        client.on(event, printer(event))
    client.on("error", lambda error: console.print(f"[red]error[/red] {error}"))
    client.on("disconnect", lambda reason: console.print(f"[yellow]disconnect[/yellow] {reason}"))
    client.on("reconnect", lambda attempt: console.print(f"[green]reconnect[/green] after {attempt} attempt(s)"))

    async def run():
        try:
            me = await client.login()
            console.print(f"[green]✓[/green] Connected as {me.username or me.id} (Ctrl+C to quit)")
            while True:
                await asyncio.sleep(3600)
        except BeniocordError as e:
            console.print(f"[red]Error: {e}[/red]")
        finally:
            await client.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\nGoodbye!")
