"""Tests for the cooperative error hooks."""

import os
import subprocess
import sys
import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest

from runwise.detector import is_error_output
from runwise.hooks import is_supervised

ROOT = Path(__file__).resolve().parent.parent


@pytest.mark.parametrize("value, expected", [("true", True), ("TRUE", True), ("1", False), ("", False)])
def test_is_supervised(value, expected):
    with patch.dict(os.environ, {"RUNWISE_ACTIVE": value}):
        assert is_supervised() is expected


def test_not_supervised_without_marker():
    with patch.dict(os.environ, {}, clear=True):
        assert is_supervised() is False


def run_script(tmp_path, source):
    script = tmp_path / "hooked.py"
    script.write_text(textwrap.dedent(source))
    env = {**os.environ, "RUNWISE_ACTIVE": "true", "PYTHONPATH": str(ROOT)}
    return subprocess.run([sys.executable, str(script)], capture_output=True, text=True, env=env, timeout=30)


def test_uncaught_exception_is_reported(tmp_path):
    result = run_script(
        tmp_path,
        """
        from runwise.hooks import install_error_hooks, is_supervised

        if is_supervised():
            install_error_hooks()

        user = None
        user.name
        """,
    )
    assert result.returncode == 1
    assert result.stderr.startswith("Uncaught Exception:")
    assert "AttributeError" in result.stderr
    assert is_error_output(result.stderr)


def test_unhandled_callback_exception_is_reported(tmp_path):
    result = run_script(
        tmp_path,
        """
        import asyncio

        from runwise.hooks import install_error_hooks

        async def main():
            loop = asyncio.get_running_loop()
            install_error_hooks(loop)
            loop.call_soon(lambda: 1 / 0)
            await asyncio.sleep(1)

        asyncio.run(main())
        """,
    )
    assert result.returncode == 1
    assert "Unhandled Rejection:" in result.stderr
    assert "ZeroDivisionError" in result.stderr
