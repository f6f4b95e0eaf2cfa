"""
Interactive prompt shown when the supervised process reports an error.

Each detected error gets one yes/no question. The question lives in a
PendingPrompt that the supervisor can cancel at any time (restart, newer
error, shutdown); cancellation resolves it immediately and the terminal is
always put back in its normal mode. On "yes" the error goes through the
explanation router behind a spinner.
"""

import asyncio
import contextlib
import logging
import os
import sys
import termios
import tty
from enum import Enum
from typing import Callable, Optional

from rich.console import Console
from rich.text import Text

from . import display
from .errors import RunwiseError
from .explainer import explain
from .models import GEMINI, Config, ErrorEvent, Explanation, PromptAnswer

logger = logging.getLogger(__name__)

KEY_UP = "up"
KEY_DOWN = "down"
KEY_ENTER = "enter"
KEY_ESCAPE = "escape"
KEY_INTERRUPT = "interrupt"
KEY_EOF = "eof"

_SEQUENCES = {
    b"\x1b[A": KEY_UP,
    b"\x1bOA": KEY_UP,
    b"\x1b[B": KEY_DOWN,
    b"\x1bOB": KEY_DOWN,
    b"\r": KEY_ENTER,
    b"\n": KEY_ENTER,
    b"\x03": KEY_INTERRUPT,
}


def decode_keys(data: bytes) -> list[str]:
    """Turn raw terminal input into key names.

    Known escape sequences map to KEY_* names, other CSI sequences are
    dropped, and printable characters come back lowercased.
    """
    keys = []
    i = 0
    while i < len(data):
        for sequence, key in _SEQUENCES.items():
            if data.startswith(sequence, i):
                keys.append(key)
                i += len(sequence)
                break
        else:
            if data[i : i + 2] == b"\x1b[":
                j = i + 2
                while j < len(data) and not 0x40 <= data[j] <= 0x7E:
                    j += 1
                i = j + 1
            elif data[i : i + 1] == b"\x1b":
                keys.append(KEY_ESCAPE)
                i += 1
            else:
                char = data[i : i + 1].decode("utf-8", errors="ignore").lower()
                if char:
                    keys.append(char)
                i += 1
    return keys


class TerminalKeys:
    """Reads keypresses from stdin without blocking the event loop.

    While open, a terminal stdin is switched to cbreak mode (no line
    buffering, no echo; Ctrl+C still raises SIGINT). close() restores the
    saved mode.
    """

    def __init__(self, stream=None):
        self._stream = stream or sys.stdin
        self._queue: Optional[asyncio.Queue] = None
        self._loop = None
        self._fd = None
        self._saved = None

    @property
    def is_raw(self) -> bool:
        return self._saved is not None

    def open(self):
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        try:
            fd = self._stream.fileno()
            if os.isatty(fd):
                self._saved = termios.tcgetattr(fd)
                tty.setcbreak(fd)
            self._loop.add_reader(fd, self._on_readable)
            self._fd = fd
        except (AttributeError, ValueError, OSError) as e:
            # No usable stdin (closed, redirected from a file, captured)
            logger.debug(f"Keyboard input unavailable: {e}")
            self._restore()
            self._queue.put_nowait(KEY_EOF)

    def close(self):
        if self._fd is not None:
            self._loop.remove_reader(self._fd)
        self._restore()
        self._fd = None

    def _restore(self):
        if self._saved is not None:
            termios.tcsetattr(self._stream.fileno(), termios.TCSADRAIN, self._saved)
            self._saved = None

    def _on_readable(self):
        try:
            data = os.read(self._fd, 64)
        except OSError:
            data = b""
        if not data:
            self._loop.remove_reader(self._fd)
            self._fd = None
            self._queue.put_nowait(KEY_EOF)
            return
        for key in decode_keys(data):
            self._queue.put_nowait(key)

    async def read_key(self) -> str:
        return await self._queue.get()


class PromptState(Enum):
    IDLE = "idle"
    AWAITING_INPUT = "awaiting_input"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class PendingPrompt:
    """The question asked about one error event.

    Owned by the supervisor's session; at most one is open at a time.
    """

    def __init__(self, event: ErrorEvent):
        self.event = event
        self.state = PromptState.IDLE
        self.answer: Optional[PromptAnswer] = None
        self.cancel_reason: Optional[str] = None
        self._cancelled = asyncio.Event()

    @property
    def is_open(self) -> bool:
        return self.state in (PromptState.IDLE, PromptState.AWAITING_INPUT)

    def cancel(self, reason: str = "restart") -> bool:
        """Cancel the prompt. Returns False if it was already settled."""
        if not self.is_open:
            return False
        self.state = PromptState.CANCELLED
        self.answer = PromptAnswer.CANCELLED
        self.cancel_reason = reason
        self._cancelled.set()
        return True

    def resolve(self, answer: PromptAnswer) -> bool:
        if not self.is_open:
            return False
        self.state = PromptState.RESOLVED
        self.answer = answer
        return True

    async def wait_cancelled(self):
        await self._cancelled.wait()


class InteractiveExplainer:
    """Asks about an error and, if wanted, explains it."""

    def __init__(
        self,
        console: Optional[Console] = None,
        keys_factory: Callable = TerminalKeys,
        explain_fn: Callable = explain,
    ):
        self.console = console or Console()
        self._keys_factory = keys_factory
        self._explain = explain_fn
        self._input_lock = asyncio.Lock()
        self._progress_active = False

    async def run(
        self,
        pending: PendingPrompt,
        config: Config,
        current_generation: Optional[Callable[[], int]] = None,
    ) -> PromptAnswer:
        answer = await self.ask(pending)
        if answer is PromptAnswer.YES:
            await self.explain_interactively(pending.event, config, current_generation)
        elif answer is PromptAnswer.NO:
            display.print_skipped(self.console)
        return answer

    async def ask(self, pending: PendingPrompt) -> PromptAnswer:
        """Ask whether to explain the error. Returns the answer."""
        if not pending.is_open:
            return pending.answer

        display.print_crash(self.console, pending.event)

        # One prompt owns the keyboard at a time
        async with self._input_lock:
            if not pending.is_open:
                return pending.answer

            pending.state = PromptState.AWAITING_INPUT
            selected = 0
            display.print_question(self.console, selected)

            keys = self._keys_factory()
            cancel_task = asyncio.ensure_future(pending.wait_cancelled())
            key_task = None
            keys.open()
            try:
                while True:
                    key_task = asyncio.ensure_future(keys.read_key())
                    done, _ = await asyncio.wait({key_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)

                    if cancel_task in done:
                        display.print_skipped(self.console, f"(Skipped due to {pending.cancel_reason})")
                        return PromptAnswer.CANCELLED

                    key = key_task.result()
                    answer = None
                    if key in (KEY_UP, "k"):
                        selected = (selected - 1) % len(display.PROMPT_OPTIONS)
                        display.redraw_options(self.console, selected)
                    elif key in (KEY_DOWN, "j", "\t"):
                        selected = (selected + 1) % len(display.PROMPT_OPTIONS)
                        display.redraw_options(self.console, selected)
                    elif key == KEY_ENTER:
                        answer = PromptAnswer(display.PROMPT_OPTIONS[selected][0])
                    elif key == "y":
                        answer = PromptAnswer.YES
                    elif key in ("n", "q", KEY_ESCAPE, KEY_EOF):
                        answer = PromptAnswer.NO
                    elif key == KEY_INTERRUPT:
                        answer = PromptAnswer.INTERRUPTED

                    if answer is not None:
                        pending.resolve(answer)
                        self.console.print()
                        return answer
            finally:
                if key_task is not None and not key_task.done():
                    key_task.cancel()
                cancel_task.cancel()
                keys.close()

    async def explain_interactively(
        self,
        event: ErrorEvent,
        config: Config,
        current_generation: Optional[Callable[[], int]] = None,
    ) -> Optional[Explanation]:
        """Explain an error behind a spinner and render the result."""
        label = "Consulting Gemini..." if config is not None and config.mode == GEMINI else "Matching known error patterns..."
        try:
            with self._progress(label):
                explanation = await self._explain(event.text, config)
        except RunwiseError as e:
            logger.error(f"Failed to explain error: {e}")
            display.print_failure(self.console, str(e))
            return None

        stale = current_generation is not None and current_generation() != event.generation
        display.print_explanation(self.console, explanation, stale=stale)
        return explanation

    @contextlib.contextmanager
    def _progress(self, label: str):
        # rich allows one live display at a time; later calls go without a spinner
        if self._progress_active:
            yield
            return
        self._progress_active = True
        try:
            with self.console.status(Text(label, style="bright_black"), spinner="dots"):
                yield
        finally:
            self._progress_active = False
