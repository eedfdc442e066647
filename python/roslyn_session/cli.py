"""Command-line interface for roslyn-session."""

import asyncio
import json
import os
import sys
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.prompt import Prompt

from .bus import NOTIFY, SESSION_STOPPED, Bus, Event
from .config import Config, ConfigModel
from .lsp.protocol import Document
from .lsp.transport import EndpointTransport
from .session import HostHooks, SessionManager
from .util.log import Log

app = typer.Typer(
    name="roslyn-session",
    help="Run a Roslyn language server session for a C# document",
    no_args_is_help=True,
)

console = Console()

_LEVEL_STYLES = {
    "DEBUG": "dim",
    "INFO": "blue",
    "WARN": "yellow",
    "ERROR": "red",
}


def _print_event(event: Event) -> None:
    level = event.properties.get("level", "INFO")
    title = event.properties.get("title", "roslyn")
    style = _LEVEL_STYLES.get(level, "")
    console.print(f"[{style}][{title}][/{style}] {event.properties.get('message', '')}")


async def _choose_solution(solutions: List[str]) -> Optional[str]:
    console.print("[bold]Select target solution:[/bold]")
    for index, solution in enumerate(solutions, 1):
        console.print(f"  {index}. {solution}")
    answer = await asyncio.to_thread(
        Prompt.ask, "Solution", choices=[str(i) for i in range(1, len(solutions) + 1)] + ["q"], default="q"
    )
    if answer == "q":
        return None
    return solutions[int(answer) - 1]


@app.command("open")
def open_document(
    document: str = typer.Argument(..., help="C# document to attach"),
    no_filewatching: bool = typer.Option(False, "--no-filewatching", help="Drop file watcher registrations"),
    broad_search: bool = typer.Option(False, "--broad-search", help="Search solutions below the git root"),
    target: bool = typer.Option(False, "--target", help="Always ask which solution to use"),
    print_logs: bool = typer.Option(False, "--print-logs", help="Print logs to stderr"),
):
    """Attach DOCUMENT and serve until the server exits."""
    code = asyncio.run(_open_async(document, no_filewatching, broad_search, target, print_logs))
    raise typer.Exit(code)


async def _open_async(document: str, no_filewatching: bool, broad_search: bool, target: bool, print_logs: bool) -> int:
    config = await Config.get()
    Log.init(print_logs, config.log_level)
    overrides = {}
    if no_filewatching:
        overrides["filewatching"] = False
    if broad_search:
        overrides["broad_search"] = True
    config = config.model_copy(update=overrides)

    stopped = asyncio.Event()
    unsubscribe = [
        Bus.subscribe(NOTIFY, _print_event),
        Bus.subscribe(SESSION_STOPPED, lambda event: stopped.set()),
    ]

    manager = SessionManager(
        config,
        EndpointTransport(),
        hooks=HostHooks(choose_target=_choose_solution),
    )
    doc = Document(id=1, path=os.path.abspath(document))
    try:
        if target:
            session = await manager.select_target(doc)
        else:
            session = await manager.attach(doc)
        if session is None:
            console.print(f"[yellow]No solution or project found for {doc.path}[/yellow]")
            return 1
        if session.is_stopped:
            return 1
        console.print(f"[dim]Session {session.id} on {session.root_dir}[/dim]")
        await stopped.wait()
        return 0
    except asyncio.CancelledError:
        manager.stop_all()
        raise
    finally:
        for fn in unsubscribe:
            fn()
        Log.close()


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help="Show current configuration"),
    set_key: Optional[str] = typer.Option(None, "--set", help="Set configuration key"),
    value: Optional[str] = typer.Option(None, "--value", help="Configuration value (JSON or plain text)"),
):
    """Manage configuration."""
    asyncio.run(_manage_config(show, set_key, value))


async def _manage_config(show: bool, set_key: Optional[str], value: Optional[str]):
    if show:
        current = await Config.get()
        console.print("[bold]Current Configuration[/bold]")
        console.print_json(json.dumps(current.model_dump(mode="json")))
        console.print(f"[dim]Command: {' '.join(current.command())}[/dim]")
    elif set_key and value is not None:
        if set_key not in ConfigModel.model_fields:
            console.print(f"[red]Unknown configuration key: {set_key}[/red]")
            return
        try:
            parsed = json.loads(value)
        except ValueError:
            parsed = value
        try:
            await Config.update({set_key: parsed})
        except ValidationError as e:
            console.print(f"[red]Invalid value for {set_key}: {e.errors()[0]['msg']}[/red]")
            return
        console.print(f"[green]Set {set_key} = {value}[/green]")
    else:
        console.print("[yellow]Use --show to view config or --set/--value to update[/yellow]")


def cli_main():
    """CLI entry point wrapper."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
