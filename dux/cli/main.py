"""dux CLI — watch a directory, rerun a command on every change.

    dux -c "python -m http.server" -d ./site --freq 0.5
    dux -p "*.py" -- pytest -x
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import signal
import sys
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from dux.cancel import CancellationToken
from dux.config import WatchTarget, settings
from dux.engine import ExecEngine
from dux.exceptions import CommandStartError
from dux.watchers.file_watch import FileWatcher

console = Console(stderr=True)

# WatchTarget field -> CLI option
_OPTION_FOR_FIELD = {
    "root": "--dir",
    "poll_interval": "--freq",
    "patterns": "--pattern",
}

_app = typer.Typer(
    name="dux",
    help="dux -- rerun a command whenever the files it depends on change.",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        from dux import __version__
        console.print(f"dux v{__version__}")
        raise typer.Exit()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _param_hint(loc: tuple) -> str | None:
    field = loc[0] if loc else None
    return _OPTION_FOR_FIELD.get(field)


async def _supervise(engine: ExecEngine) -> None:
    """Run the engine until SIGINT or SIGTERM."""
    cancel = CancellationToken()
    loop = asyncio.get_running_loop()
    stop_signals = (signal.SIGINT, signal.SIGTERM)
    for sig in stop_signals:
        loop.add_signal_handler(sig, cancel.cancel)
    try:
        await engine.run(cancel)
    finally:
        for sig in stop_signals:
            loop.remove_signal_handler(sig)


@_app.command()
def run(
    args: Optional[List[str]] = typer.Argument(
        None, help="Arguments appended to the command (or the command itself)",
    ),
    command: str = typer.Option("", "--command", "-c", help="Shell-style command to execute"),
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="Directory to monitor for changes",
    ),
    freq: Optional[float] = typer.Option(
        None, "--freq", help="Seconds between scans of the directory",
    ),
    patterns: Optional[List[str]] = typer.Option(
        None, "--pattern", "-p", help="Only watch file names matching this glob",
    ),
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show dux version",
    ),
):
    """Run COMMAND and restart it whenever a watched file changes."""
    parts = shlex.split(command) + list(args or [])
    if not parts:
        console.print(
            "[red]Missing required command parameter ('-c').[/red] "
            "Try again with a '-c' argument containing a valid shell command."
        )
        raise typer.Exit(1)

    try:
        target = WatchTarget.from_settings(
            root=directory,
            poll_interval=freq,
            patterns=patterns or None,
        )
    except ValidationError as e:
        error = e.errors()[0]
        raise typer.BadParameter(error["msg"], param_hint=_param_hint(error["loc"]))

    _setup_logging(log_level)
    engine = ExecEngine(parts[0], parts[1:], watcher=FileWatcher(target))

    try:
        asyncio.run(_supervise(engine))
    except CommandStartError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[dim]stopped after {engine.restarts} restarts[/dim]")


def app(args: list[str] | None = None) -> None:
    """Console-script entry point."""
    _app(args=args if args is not None else sys.argv[1:], prog_name="dux")
