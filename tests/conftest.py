"""Shared fixtures for runwise tests."""

import asyncio
import io
from typing import Optional

import pytest
from rich.console import Console

from runwise.models import PromptAnswer


class ScriptedKeys:
    """Key source fed from a list; blocks forever once the script runs out."""

    instances = []

    def __init__(self, keys=()):
        self._keys = list(keys)
        self.opened = False
        self.closed = False
        ScriptedKeys.instances.append(self)

    def open(self):
        self.opened = True
        self._queue = asyncio.Queue()
        for key in self._keys:
            self._queue.put_nowait(key)

    def close(self):
        self.closed = True

    @property
    def is_raw(self) -> bool:
        return self.opened and not self.closed

    async def read_key(self) -> str:
        return await self._queue.get()


class FakeExplainer:
    """Stands in for the interactive explainer in supervisor tests."""

    def __init__(self, answer: PromptAnswer = PromptAnswer.NO, block: bool = False):
        self.answer = answer
        self.block = block
        self.calls = []
        self.explained = []

    async def run(self, pending, config, current_generation=None) -> PromptAnswer:
        self.calls.append(pending)
        if self.block:
            await pending.wait_cancelled()
            return pending.answer
        pending.resolve(self.answer)
        if self.answer is PromptAnswer.YES:
            self.explained.append(pending.event)
        return self.answer


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=100)


def console_text(console: Console) -> str:
    return console.file.getvalue()


async def wait_until(predicate, timeout: float = 10.0, interval: float = 0.02) -> Optional[bool]:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
    return True


@pytest.fixture(autouse=True)
def reset_scripted_keys():
    ScriptedKeys.instances.clear()
    yield
    ScriptedKeys.instances.clear()
