"""
Source file watcher.

Uses watchdog to observe the project tree and reports a change only after a
path has been quiet for the write-settle window, so a file is never picked
up halfway through being written. Callbacks run on the asyncio loop, not on
the observer thread.
"""

import asyncio
import fnmatch
import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

WATCHED_SUFFIXES = (".py", ".js", ".mjs", ".cjs", ".ts", ".json", ".toml", ".yaml", ".yml")
IGNORED_DIRS = (".git", "node_modules", "__pycache__", ".venv", "venv")


def should_watch(path: str, root: Path, ignore_patterns: Iterable[str] = ()) -> bool:
    """Decide whether a changed path should trigger a restart."""
    path = Path(path)
    if path.suffix.lower() not in WATCHED_SUFFIXES:
        return False

    try:
        relative = path.resolve().relative_to(root.resolve())
    except ValueError:
        relative = path

    parts = relative.parts
    if any(part in IGNORED_DIRS for part in parts):
        return False

    relative_str = relative.as_posix()
    for pattern in ignore_patterns:
        if fnmatch.fnmatch(relative_str, pattern):
            return False
        if any(fnmatch.fnmatch(part, pattern) for part in parts):
            return False
    return True


class _ChangeHandler(FileSystemEventHandler):
    """Forwards qualifying writes from the observer thread."""

    def __init__(self, callback: Callable[[str], None], root: Path, ignore_patterns: Iterable[str]):
        self._callback = callback
        self._root = root
        self._ignore_patterns = tuple(ignore_patterns)

    def on_modified(self, event):
        if not event.is_directory:
            self._forward(event.src_path)

    def on_moved(self, event):
        # Editors that save via rename-over
        if not event.is_directory:
            self._forward(event.dest_path)

    def _forward(self, path):
        if isinstance(path, bytes):
            path = path.decode()
        if should_watch(path, self._root, self._ignore_patterns):
            self._callback(path)


class FileWatcher:
    """Watches a directory tree and reports settled file changes."""

    def __init__(
        self,
        root: Path,
        on_change: Callable[[str], None],
        ignore_patterns: Iterable[str] = (),
        settle: float = 0.3,
    ):
        self.root = Path(root)
        self._on_change = on_change
        self._ignore_patterns = tuple(ignore_patterns)
        self._settle = settle
        self._observer: Optional[Observer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: dict[str, asyncio.TimerHandle] = {}

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self):
        if self._observer is not None:
            return
        self._loop = asyncio.get_running_loop()
        handler = _ChangeHandler(self._on_raw_change, self.root, self._ignore_patterns)
        self._observer = Observer()
        self._observer.schedule(handler, str(self.root), recursive=True)
        self._observer.start()
        logger.info(f"Watching {self.root} for changes")

    def stop(self):
        for handle in self._pending.values():
            handle.cancel()
        self._pending.clear()

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.info("Stopped file watcher")

    def _on_raw_change(self, path: str):
        # Observer thread
        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(self.note_change, path)

    def note_change(self, path: str):
        """Record a write; fire once the path has been quiet for the settle window."""
        handle = self._pending.pop(path, None)
        if handle is not None:
            handle.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._pending[path] = loop.call_later(self._settle, self._fire, path)

    def _fire(self, path: str):
        self._pending.pop(path, None)
        logger.debug(f"File changed: {path}")
        self._on_change(path)
