"""
Process supervisor for a single development script.

Starts the script as a child process, passes its output through to the
terminal, and watches that output for errors. Detected errors are debounced
and handed to the interactive explainer. Source changes restart the child
(SIGTERM, then SIGKILL after a grace window).

Everything runs on one asyncio loop: stream readers, the exit waiter, the
file watcher and signal handlers post messages to a queue, and run()
consumes them in order.
"""

import asyncio
import codecs
import logging
import os
import shlex
import signal
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import psutil
from rich.console import Console
from rich.text import Text

from . import display
from .config import settings
from .detector import is_error_output
from .models import Config, ErrorEvent, PromptAnswer, Stream
from .prompt import InteractiveExplainer, PendingPrompt
from .watcher import FileWatcher

logger = logging.getLogger(__name__)

MARKER_ENV = "RUNWISE_ACTIVE"
CHUNK_SIZE = 4096
PIPE_DRAIN_TIMEOUT = 1.0

RUNTIMES = {
    ".py": [sys.executable],
    ".js": ["node"],
    ".mjs": ["node"],
    ".cjs": ["node"],
    ".ts": ["npx", "tsx"],
}


def resolve_runtime(script_path, override: Optional[str] = None) -> list[str]:
    """Pick the interpreter command for a script from its extension."""
    if override:
        return shlex.split(override)
    return list(RUNTIMES.get(Path(script_path).suffix.lower(), [sys.executable]))


def signal_name(number: int) -> str:
    try:
        return signal.Signals(number).name
    except ValueError:
        return f"signal {number}"


@dataclass
class OutputChunk:
    generation: int
    stream: Stream
    data: bytes
    text: str


@dataclass
class ChildExited:
    generation: int
    returncode: Optional[int]


@dataclass
class FileChanged:
    path: str


@dataclass
class ShutdownRequested:
    reason: str


@dataclass
class Session:
    """State of one supervised run. Mutated only by the Runner."""

    script_path: Path
    args: list[str]
    config: Config
    runtime: list[str]
    process: Optional[asyncio.subprocess.Process] = None
    watcher: Optional[FileWatcher] = None
    generation: int = 0
    is_restarting: bool = False
    is_process_exiting: bool = False
    last_trigger_at: Optional[float] = None
    error_buffer: str = ""
    collecting: Optional[ErrorEvent] = None
    pending_prompt: Optional[PendingPrompt] = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def command(self) -> list[str]:
        return [*self.runtime, str(self.script_path), *self.args]


class Runner:
    """Supervises one script and explains its errors."""

    def __init__(
        self,
        script_path,
        args: Optional[list[str]] = None,
        config: Optional[Config] = None,
        runtime: Optional[list[str]] = None,
        explainer: Optional[InteractiveExplainer] = None,
        console: Optional[Console] = None,
        watch_root: Optional[Path] = None,
        watch: bool = True,
        handle_signals: bool = True,
        stdout=None,
        stderr=None,
        grace: Optional[float] = None,
        settle: Optional[float] = None,
        debounce: Optional[float] = None,
        burst: Optional[float] = None,
        clock=time.monotonic,
    ):
        self.config = config or Config()
        self.console = console or Console()
        self.session = Session(
            script_path=Path(script_path),
            args=list(args or []),
            config=self.config,
            runtime=list(runtime) if runtime else resolve_runtime(script_path),
        )
        self.explainer = explainer or InteractiveExplainer(console=self.console)
        self.watch_root = Path(watch_root) if watch_root else Path.cwd()
        self._watch = watch
        self._handle_signals = handle_signals
        self._stdout = stdout or sys.stdout.buffer
        self._stderr = stderr or sys.stderr.buffer
        self._grace = grace if grace is not None else settings.grace_ms / 1000
        self._settle = settle if settle is not None else settings.settle_ms / 1000
        self._debounce = debounce if debounce is not None else settings.debounce_ms / 1000
        self._burst = burst if burst is not None else settings.burst_ms / 1000
        self._burst_handle: Optional[asyncio.TimerHandle] = None
        self._clock = clock
        self._queue: asyncio.Queue = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._start_lock = asyncio.Lock()
        self._installed_signals: list[signal.Signals] = []

    # Lifecycle

    async def run(self) -> int:
        """Supervise until shutdown is requested. Returns the exit code."""
        self._install_signal_handlers()
        try:
            await self.start()
            while True:
                message = await self._queue.get()
                if isinstance(message, ShutdownRequested):
                    logger.info(f"Shutting down ({message.reason})")
                    self.console.print(Text("\nShutting down runwise...\n", style="yellow"))
                    break
                self._dispatch(message)
        finally:
            await self.stop()
            self._remove_signal_handlers()
        return 0

    async def start(self):
        """Launch the script, replacing any child that is still running."""
        async with self._start_lock:
            s = self.session
            if s.process is not None and s.process.returncode is None:
                await self._terminate(s.process)

            s.generation += 1
            generation = s.generation
            s.process = None
            s.error_buffer = ""
            self._drop_burst()
            s.is_process_exiting = False
            s.started_at = time.monotonic()

            display.print_starting(self.console, shlex.join(s.command))
            env = {**os.environ, MARKER_ENV: "true"}

            try:
                process = await asyncio.create_subprocess_exec(
                    *s.command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                    start_new_session=True,  # Own process group
                )
            except OSError as e:
                logger.error(f"Error spawning process: {e}")
                self.console.print(Text(f"\n✗ Error spawning process: {e}\n", style="red"))
                self.trigger(
                    ErrorEvent(text=f"Error spawning process: {e}", stream=Stream.SPAWN, generation=generation),
                    at_exit=True,
                )
                self._ensure_watcher()
                return

            s.process = process
            logger.info(f"Started {s.script_path} with PID {process.pid}")

            pumps = [
                self._spawn(self._pump(generation, Stream.STDOUT, process.stdout)),
                self._spawn(self._pump(generation, Stream.STDERR, process.stderr)),
            ]
            self._spawn(self._wait_for_exit(generation, process, pumps))
            self._ensure_watcher()

    async def restart(self, reason: str = ""):
        """Stop the child and start it again. Ignored while a restart is running."""
        s = self.session
        if s.is_restarting:
            logger.debug(f"Restart already in progress, ignoring ({reason})")
            return

        s.is_restarting = True
        try:
            self._cancel_prompt("restart")
            process = s.process
            if process is not None and process.returncode is None:
                await self._terminate(process)
                await asyncio.sleep(self._settle)
        finally:
            s.is_restarting = False

        if reason:
            logger.info(f"Restarting: {reason}")
            display.print_restarting(self.console, reason)
        await self.start()

    async def stop(self):
        """Tear down the watcher, the child, and any background work."""
        s = self.session
        self._drop_burst()
        self._cancel_prompt("shutdown")

        if s.watcher is not None:
            s.watcher.stop()
            s.watcher = None

        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        process = s.process
        if process is not None and process.returncode is None:
            await self._terminate(process)
        s.process = None

    def request_shutdown(self, reason: str = "signal"):
        self._cancel_prompt("shutdown")
        self._queue.put_nowait(ShutdownRequested(reason))

    def notify_file_changed(self, path):
        self._queue.put_nowait(FileChanged(str(path)))

    # Error pipeline

    def trigger(self, event: ErrorEvent, at_exit: bool = False) -> bool:
        """Start the explain pipeline for an error unless it is suppressed.

        An accepted event collects the rest of its output burst (the remaining
        lines of a traceback) for the burst window, or until the child exits,
        before the prompt opens. Returns True if the event was accepted.
        """
        s = self.session
        if s.is_restarting:
            logger.debug("Restart in progress, discarding error event")
            return False

        # The exit path reports this text once the child is gone
        if s.is_process_exiting and not at_exit:
            return False

        now = self._clock()
        if s.last_trigger_at is not None and now - s.last_trigger_at < self._debounce:
            s.error_buffer = ""
            return False

        s.last_trigger_at = now
        s.error_buffer = ""
        self._drop_burst()
        if at_exit or self._burst <= 0:
            self._launch_pipeline(event)
        else:
            s.collecting = event
            self._burst_handle = asyncio.get_running_loop().call_later(self._burst, self._flush_burst)
        return True

    def _flush_burst(self):
        """Hand a collected event to the pipeline."""
        s = self.session
        event = s.collecting
        self._drop_burst()
        if event is None:
            return
        if event.generation != s.generation or s.is_restarting:
            logger.debug("Discarding error collected for an earlier run")
            return
        self._launch_pipeline(event)

    def _drop_burst(self):
        if self._burst_handle is not None:
            self._burst_handle.cancel()
            self._burst_handle = None
        self.session.collecting = None

    def _launch_pipeline(self, event: ErrorEvent):
        s = self.session
        if s.pending_prompt is not None:
            s.pending_prompt.cancel("newer error")
        pending = PendingPrompt(event)
        s.pending_prompt = pending
        self._spawn(self._run_pipeline(pending))

    async def _run_pipeline(self, pending: PendingPrompt):
        try:
            answer = await self.explainer.run(pending, self.config, lambda: self.session.generation)
        except Exception as e:
            logger.error(f"Explanation pipeline failed: {e}")
            return
        finally:
            if self.session.pending_prompt is pending:
                self.session.pending_prompt = None

        if answer is PromptAnswer.INTERRUPTED:
            self.request_shutdown("interrupt")

    def _cancel_prompt(self, reason: str):
        pending = self.session.pending_prompt
        if pending is not None and pending.cancel(reason):
            logger.debug(f"Cancelled pending prompt ({reason})")

    # Message handling

    def _dispatch(self, message):
        if isinstance(message, OutputChunk):
            self._on_output(message)
        elif isinstance(message, ChildExited):
            self._on_exit(message)
        elif isinstance(message, FileChanged):
            self._on_file_changed(message)

    def _on_output(self, chunk: OutputChunk):
        sink = self._stderr if chunk.stream is Stream.STDERR else self._stdout
        try:
            sink.write(chunk.data)
            sink.flush()
        except (OSError, ValueError) as e:
            logger.debug(f"Could not forward child output: {e}")

        s = self.session
        if chunk.generation != s.generation:
            return

        is_error = is_error_output(chunk.text)
        if s.collecting is not None:
            # Rest of the burst belongs to the event already accepted
            if chunk.stream is Stream.STDERR or is_error:
                s.collecting.text += chunk.text
            return
        if chunk.stream is Stream.STDERR or is_error:
            s.error_buffer += chunk.text
        if is_error:
            self.trigger(ErrorEvent(text=chunk.text, stream=chunk.stream, generation=chunk.generation))

    def _on_exit(self, message: ChildExited):
        s = self.session
        current = message.generation == s.generation
        code = message.returncode

        # No more output is coming for a collected event
        if current and s.collecting is not None:
            self._flush_burst()

        if code is not None and code < 0:
            name = signal_name(-code)
            logger.info(f"Process terminated by signal {name}")
            self.console.print(Text(f"\nProcess terminated by signal {name}\n", style="yellow"))
        elif code:
            logger.info(f"Process exited with code {code}")
            if current and not s.is_restarting:
                self.console.print(Text(f"\n✗ Process exited with code {code}\n", style="red"))
                if s.error_buffer.strip():
                    self.trigger(
                        ErrorEvent(text=s.error_buffer, stream=Stream.EXIT, generation=message.generation),
                        at_exit=True,
                    )
        elif current:
            logger.info("Process exited cleanly")
            self.console.print(Text("\n✓ Process exited cleanly\n", style="green"))

        if current:
            s.process = None
            s.error_buffer = ""
            s.is_process_exiting = False
            if self.config.auto_restart:
                self.console.print(Text("Waiting for file changes before restarting...", style="bright_black"))

    def _on_file_changed(self, message: FileChanged):
        if not self.config.auto_restart:
            logger.debug(f"Ignoring change to {message.path}: auto-restart disabled")
            return
        try:
            shown = Path(message.path).resolve().relative_to(self.watch_root.resolve())
        except ValueError:
            shown = message.path
        self._spawn(self.restart(f"file changed: {shown}"))

    # Child process plumbing

    async def _pump(self, generation: int, stream: Stream, reader: asyncio.StreamReader):
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await reader.read(CHUNK_SIZE)
            if not data:
                break
            self._queue.put_nowait(OutputChunk(generation, stream, data, decoder.decode(data)))

    async def _wait_for_exit(self, generation: int, process: asyncio.subprocess.Process, pumps: list):
        returncode = await process.wait()
        if generation == self.session.generation:
            self.session.is_process_exiting = True
        # Let buffered output reach the queue before the exit does
        await asyncio.wait(pumps, timeout=PIPE_DRAIN_TIMEOUT)
        self._queue.put_nowait(ChildExited(generation, returncode))

    async def _terminate(self, process: asyncio.subprocess.Process):
        """SIGTERM the child's process group, then SIGKILL after the grace window."""
        if process.returncode is not None:
            return

        self._signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self._grace)
        except asyncio.TimeoutError:
            logger.warning(f"Process {process.pid} did not stop gracefully, forcing kill")
            self._kill_tree(process)
            await process.wait()

    @staticmethod
    def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals):
        try:
            os.killpg(os.getpgid(process.pid), sig)
        except ProcessLookupError:
            pass

    def _kill_tree(self, process: asyncio.subprocess.Process):
        # Descendants that left the process group still have to go
        try:
            children = psutil.Process(process.pid).children(recursive=True)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            children = []

        self._signal_group(process, signal.SIGKILL)
        for child in children:
            try:
                child.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                pass

    def _ensure_watcher(self):
        s = self.session
        if not self._watch or s.watcher is not None or not self.config.auto_restart:
            return

        watcher = FileWatcher(
            self.watch_root,
            on_change=self.notify_file_changed,
            ignore_patterns=self.config.ignore_patterns,
            settle=settings.write_settle_ms / 1000,
        )
        try:
            watcher.start()
        except OSError as e:
            logger.warning(f"File watching disabled: {e}")
            return
        s.watcher = watcher

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background task failed: {task.exception()}")

    def _install_signal_handlers(self):
        if not self._handle_signals:
            return
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
                self._installed_signals.append(sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                logger.debug(f"Cannot handle {sig.name}: {e}")

    def _remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in self._installed_signals:
            loop.remove_signal_handler(sig)
        self._installed_signals.clear()
