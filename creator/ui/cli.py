# Copyright 2025 Creator Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Command-line interface for Creator."""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from creator import __version__
from creator.agent.debug_logger import configure_logging
from creator.agent.messages import StepMessage, StepType
from creator.agent.progress import ProgressEventType
from creator.agent.sqlite_conversation_store import SQLiteConversationStore
from creator.api.chat_service import ChatResponse, ChatService, StaticContextProvider
from creator.config.settings import Settings, load_settings
from creator.core.errors import CreatorError
from creator.providers.proxy_client import ProxyClient

app = typer.Typer(
    name="creator",
    help="AI assistant that builds WordPress sites through multi-step tasks",
    add_completion=False,
)

console = Console()

_TYPE_STYLES = {
    StepType.COMPLETE: "green",
    StepType.ERROR: "red",
    StepType.QUESTION: "yellow",
    StepType.PLAN: "cyan",
    StepType.ROADMAP: "cyan",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"Creator v{__version__}")
        raise typer.Exit()


@app.callback()
def root(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Creator - multi-step AI task runner."""


class RichProgressSink:
    """Prints streamed progress events as one line each."""

    def __init__(self, out: Console) -> None:
        self.console = out

    def push(self, event_name: str, payload: Dict[str, Any]) -> None:
        if event_name == ProgressEventType.CONNECTED.value:
            self.console.print(f"[dim]session {payload.get('session_id', '')}[/]")
        elif event_name == ProgressEventType.PROGRESS.value:
            self.console.print(
                f"[dim]{payload.get('iteration', 0):>3}[/] "
                f"[bold]{payload.get('phase', '')}[/] {payload.get('display_message', '')}"
            )


def _load(config: Optional[Path], log_level: Optional[str]) -> Settings:
    try:
        settings = load_settings(config)
    except CreatorError as e:
        console.print(f"[bold red]Error:[/] {e.message}")
        raise typer.Exit(1)
    configure_logging(log_level or settings.log_level, settings.log_file)
    return settings


def render_response(response: ChatResponse, show_steps: bool = False) -> None:
    step: StepMessage = response.response
    style = _TYPE_STYLES.get(step.type, "white")
    body = step.message or step.status or step.type.value
    console.print(
        Panel(
            Markdown(body),
            title=f"[{style}]{step.type.value}[/] {step.status}",
            border_style=style,
        )
    )
    if step.requires_confirmation:
        console.print(
            f"[yellow]Confirmation required.[/] Run: creator chat --session {response.session_id} --confirm-plan"
        )
    if show_steps and step.steps:
        table = Table(title="Steps")
        table.add_column("#", justify="right")
        table.add_column("Type")
        table.add_column("Retry", justify="right")
        table.add_column("Description")
        for record in step.steps:
            table.add_row(str(record.iteration), record.type, str(record.retry_count), record.display_message)
        console.print(table)


@app.command()
def chat(
    message: str = typer.Argument("", help="Message to send"),
    session: Optional[str] = typer.Option(None, "--session", "-s", help="Continue an existing session"),
    confirm_plan: bool = typer.Option(False, "--confirm-plan", help="Confirm the pending plan"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Show progress while running"),
    show_steps: bool = typer.Option(False, "--steps", help="Print the step trace"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override log level"),
) -> None:
    """Send a message and run the task to completion.

    Examples:
        creator chat "Create an About page with a contact form"

        creator chat --session 3f2a... --confirm-plan
    """
    settings = _load(config, log_level)
    response = asyncio.run(_run_chat(settings, message, session, confirm_plan, stream))
    render_response(response, show_steps)
    if not response.success:
        raise typer.Exit(1)


async def _run_chat(
    settings: Settings,
    message: str,
    session: Optional[str],
    confirm_plan: bool,
    stream: bool,
) -> ChatResponse:
    service = ChatService.from_settings(
        settings, context_provider=StaticContextProvider({"site_url": settings.site_url})
    )
    try:
        if stream:
            return await service.stream_message(
                message, RichProgressSink(console), session_id=session, confirm_plan=confirm_plan
            )
        return await service.submit_message(message, session_id=session, confirm_plan=confirm_plan)
    except (CreatorError, ValueError) as e:
        console.print(f"[bold red]Error:[/] {getattr(e, 'message', str(e))}")
        raise typer.Exit(1)
    finally:
        await service.aclose()


@app.command()
def history(
    session: Optional[str] = typer.Argument(None, help="Session id (lists sessions if omitted)"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum entries"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
) -> None:
    """Show stored sessions or the messages of one session."""
    settings = _load(config, None)
    store = SQLiteConversationStore(settings.db_path)
    try:
        if session is None:
            table = Table(title="Sessions")
            table.add_column("Session")
            table.add_column("Title")
            table.add_column("Messages", justify="right")
            table.add_column("Updated")
            for row in store.list_sessions(limit):
                table.add_row(row["id"], row["title"] or "", str(row["message_count"]), row["updated_at"])
            console.print(table)
            return

        if not store.session_exists(session):
            console.print(f"[bold red]Error:[/] Session not found: {session}")
            raise typer.Exit(1)
        for turn in store.read_history(session, limit):
            label = "[bold cyan]you[/]" if turn.role == "user" else "[bold green]creator[/]"
            kind = f" [dim]({turn.control.get('type')})[/]" if turn.control else ""
            console.print(f"{label}{kind}: {turn.content}")
    finally:
        store.close()


@app.command()
def health(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config file"),
) -> None:
    """Check that the AI proxy is reachable."""
    settings = _load(config, None)
    try:
        result = asyncio.run(_check_health(settings))
    except CreatorError as e:
        console.print(f"[bold red]Proxy unreachable:[/] {e.message}")
        raise typer.Exit(1)
    status = result.get("status", "unknown")
    style = "green" if result.get("status_code") == 200 else "red"
    console.print(f"[{style}]{settings.proxy_url}: {status}[/]")
    if result.get("status_code") != 200:
        raise typer.Exit(1)


async def _check_health(settings: Settings) -> Dict[str, Any]:
    async with ProxyClient.from_settings(settings) as proxy:
        return await proxy.health_check()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
