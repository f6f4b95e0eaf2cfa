"""
First-run setup: choose an explanation mode and save the config file.
"""

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from .config import create_config, get_config_path
from .explainer.gemini import DEFAULT_ENDPOINT
from .models import GEMINI, NORMAL, Config

logger = logging.getLogger(__name__)

API_KEY_URL = "https://aistudio.google.com/app/apikey"
MIN_KEY_LENGTH = 10


def ask_api_key(console: Console) -> str:
    while True:
        key = Prompt.ask("Paste your Gemini API key", password=True, console=console).strip()
        if len(key) >= MIN_KEY_LENGTH:
            return key
        console.print("[red]API key seems invalid (too short). Copy the full key from Google AI Studio.[/red]")


def run_setup(console: Optional[Console] = None, path: Optional[Path] = None) -> Config:
    """Ask for a mode (and key) and write the configuration."""
    console = console or Console()
    console.print(Panel("Development supervisor that explains your crashes", title="runwise setup", border_style="cyan"))

    console.print("  [cyan]gemini[/cyan]  AI-powered explanations using Google Gemini")
    console.print("  [cyan]normal[/cyan]  Offline pattern-based explanations")
    mode = Prompt.ask("Select explanation mode", choices=[NORMAL, GEMINI], default=NORMAL, console=console)

    if mode == GEMINI:
        console.print(
            Panel(
                f"1. Visit: [blue]{API_KEY_URL}[/blue]\n2. Click \"Create API key\"\n3. Copy the key and paste below",
                title="Google Gemini",
                border_style="cyan",
            )
        )
        config = create_config(GEMINI, api_key=ask_api_key(console), path=path)
        console.print("\n[green]✓ Gemini configuration saved![/green]")
        console.print(f"[bright_black]  Endpoint: {DEFAULT_ENDPOINT}[/bright_black]")
    else:
        config = create_config(NORMAL, path=path)
        console.print("\n[green]✓ Normal mode configured[/green]")

    logger.info(f"Setup complete, mode={mode}")
    console.print(
        Panel(
            "Run your script with runwise:\n  [yellow]runwise app.py[/yellow]\n\n"
            "Or with arguments:\n  [yellow]runwise server.py --port 3000[/yellow]",
            title="Next steps",
            border_style="cyan",
        )
    )
    return config


def reset_config(console: Optional[Console] = None, path: Optional[Path] = None) -> Config:
    """Delete the saved configuration and run setup again."""
    path = Path(path) if path else get_config_path()
    if path.exists():
        path.unlink()
        logger.info(f"Removed configuration {path}")
    return run_setup(console, path=path)
