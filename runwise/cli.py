"""
Command line interface for runwise.

    runwise [OPTIONS] SCRIPT [SCRIPT_ARGS]...

Loads (or creates, via the setup flow) the project configuration and runs
the supervisor until interrupted.
"""

import asyncio
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from . import __version__
from .config import load_config, settings, validate_config
from .errors import RunwiseError
from .runner import Runner, resolve_runtime
from .wizard import reset_config, run_setup

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="runwise",
    help="Run a script, restart it on changes, and explain its crashes.",
    add_completion=False,
)

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False):
    """Rotating log file under ~/.runwise plus warnings on stderr."""
    handlers = []

    try:
        settings.ensure_data_dir()
        file_handler = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)
    except OSError:
        pass

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("runwise: %(levelname)s: %(message)s"))
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    handlers.append(console_handler)

    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=handlers, force=True)
    # Request URLs carry the API key
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    }
)
def main(
    script: Optional[str] = typer.Argument(None, help="Script to run"),
    script_args: Optional[List[str]] = typer.Argument(None, help="Arguments passed to the script"),
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
    setup: bool = typer.Option(False, "--setup", help="Run the setup wizard"),
    reset: bool = typer.Option(False, "--reset", help="Reset the configuration"),
    runtime: Optional[str] = typer.Option(None, "--runtime", help="Interpreter command, e.g. 'node' or 'python3 -X dev'"),
    verbose: bool = typer.Option(False, "--verbose", help="Show debug logging"),
):
    """Run SCRIPT under supervision and explain its errors."""
    if version:
        console.print(f"runwise {__version__}")
        raise typer.Exit(0)

    configure_logging(verbose)

    if setup or reset:
        try:
            if reset:
                reset_config(console)
            else:
                run_setup(console)
        except (RunwiseError, EOFError, KeyboardInterrupt) as e:
            err_console.print(f"[red]Setup failed:[/red] {e}")
            raise typer.Exit(1)
        raise typer.Exit(0)

    if not script:
        err_console.print("[red]Error: Please provide a script to run[/red]\n")
        err_console.print("Usage: runwise [OPTIONS] SCRIPT [SCRIPT_ARGS]...  (see --help)")
        raise typer.Exit(1)

    script_path = (Path.cwd() / script).resolve()
    if not script_path.exists():
        err_console.print(f"[red]Error: Script not found: {script_path}[/red]")
        raise typer.Exit(1)

    try:
        config = load_config()
        if config is None:
            console.print("[cyan]No configuration found. Running setup wizard...[/cyan]\n")
            config = run_setup(console)
        validate_config(config)
    except (RunwiseError, EOFError, KeyboardInterrupt) as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    runner = Runner(
        script_path,
        args=script_args or [],
        config=config,
        runtime=resolve_runtime(script_path, runtime),
        console=console,
    )

    try:
        code = asyncio.run(runner.run())
    except Exception as e:
        logger.exception("Unexpected error")
        err_console.print(f"[red]Unexpected error:[/red] {e}")
        raise typer.Exit(1)
    raise typer.Exit(code)
