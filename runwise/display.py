"""
Terminal rendering for runwise banners, prompts and explanations.
"""

import re

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from .models import GEMINI, ErrorEvent, Explanation

CRASH_COLOR = "#FF5F5F"
ACCENT_COLOR = "#00FF87"
KEYWORD_COLOR = "#FFAF00"

SECTION_KEYWORDS = (
    "Summary|Problem|Cause|Solution|Fix|Where|Why|File|Line|Note|Suggestion|"
    "Minimal code fix|Code|Common causes"
)
SECTION_RE = re.compile(rf"^({SECTION_KEYWORDS}):", re.IGNORECASE)

# Options shown by the yes/no prompt, in display order
PROMPT_OPTIONS = (
    ("yes", "✓ Yes, explain it", "green"),
    ("no", "✗ No, just skip", "bright_black"),
)


def print_starting(console: Console, command: str):
    console.print(Text(f"\n▶ Starting: {command}\n", style="blue"))


def print_restarting(console: Console, reason: str):
    console.print(Text(f"\n↻ Restarting... ({reason})\n", style="yellow"))


def print_crash(console: Console, event: ErrorEvent):
    console.print()
    console.print(Rule(style=CRASH_COLOR, characters="─"))
    console.print(Text.assemble(("  CRASH DETECTED", f"bold {CRASH_COLOR}"), (f"  ({event.stream.value})", "dim")))
    console.print(Rule(style=CRASH_COLOR, characters="─"))
    console.print()
    console.print(Text(f"    {event.summary}", style="white"))
    console.print()


def render_options(selected: int) -> Text:
    text = Text()
    for index, (_, label, style) in enumerate(PROMPT_OPTIONS):
        prefix = "❯ " if index == selected else "  "
        text.append("    ")
        text.append(prefix, style="cyan")
        text.append(label, style=style)
        if index < len(PROMPT_OPTIONS) - 1:
            text.append("\n")
    return text


def print_question(console: Console, selected: int):
    console.print(Text.assemble(("    ? ", "cyan"), ("Would you like an explanation?", "white")))
    console.print(render_options(selected))


def redraw_options(console: Console, selected: int):
    """Redraw the option list in place (terminals only)."""
    if console.is_terminal:
        console.file.write(f"\x1b[{len(PROMPT_OPTIONS)}A\x1b[0J")
        console.file.flush()
    console.print(render_options(selected))


def format_explanation(explanation: Explanation) -> Text:
    """Style an explanation body: section keywords and quoted code stand out."""
    body = Text()
    for line in explanation.text.splitlines():
        content = line.strip()
        if not content:
            body.append("\n")
            continue
        if SECTION_RE.match(content):
            body.append("\n")
        styled = Text("    " + content)
        styled.highlight_regex(rf"(?i)^\s*(?:{SECTION_KEYWORDS}):", f"bold {KEYWORD_COLOR}")
        styled.highlight_regex(r"`[^`]+`|'[^']+'", ACCENT_COLOR)
        body.append_text(styled)
        body.append("\n")
    return body


def print_explanation(console: Console, explanation: Explanation, stale: bool = False):
    title = "✦ GEMINI INTELLIGENCE" if explanation.backend == GEMINI else "✦ RUNWISE EXPLANATION"
    console.print()
    console.print(Text(f"  {title}", style=f"bold {ACCENT_COLOR}"))
    console.print(Text("  " + "─" * 45, style="bright_black"))
    if explanation.fell_back:
        console.print(Text(f"  Gemini unavailable ({explanation.fallback_reason}); offline explanation below", style="yellow"))
    if explanation.pattern:
        console.print(Text(f"  Matched: {explanation.pattern}", style="dim"))
    if stale:
        console.print(Text("  (for an error from an earlier run)", style="dim"))
    console.print()
    console.print(format_explanation(explanation))
    console.print()


def print_skipped(console: Console, reason: str = "Skipped."):
    console.print(Text(f"    {reason}\n", style="bright_black"))


def print_failure(console: Console, message: str):
    console.print(Text("  ✗ Failed to explain", style="bold red"))
    console.print(Text(f"  {message}", style="red"))
    console.print()
