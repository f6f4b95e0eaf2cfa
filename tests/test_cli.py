"""Tests for the command line interface and setup flow."""

import io
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from runwise import __version__
from runwise.cli import app
from runwise.config import HIDDEN_CONFIG_FILE
from runwise.wizard import reset_config, run_setup

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("runwise.cli.configure_logging"):
        yield


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_missing_script_argument():
    result = runner.invoke(app, [])
    assert result.exit_code == 1
    assert "Please provide a script" in result.output


def test_script_not_found(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["missing.py"])
    assert result.exit_code == 1
    assert "Script not found" in result.output


def test_invalid_config_exits_with_error(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "app.py").write_text("print('hi')\n")
    (tmp_path / HIDDEN_CONFIG_FILE).write_text(json.dumps({"mode": "openai"}))
    result = runner.invoke(app, ["app.py"])
    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_runs_script_with_arguments(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "server.js").write_text("console.log('hi')\n")
    (tmp_path / HIDDEN_CONFIG_FILE).write_text(json.dumps({"mode": "normal"}))

    fake_runner = MagicMock()
    fake_runner.run = AsyncMock(return_value=0)
    with patch("runwise.cli.Runner", return_value=fake_runner) as runner_cls:
        result = runner.invoke(app, ["server.js", "--port", "3000"])

    assert result.exit_code == 0
    args, kwargs = runner_cls.call_args
    assert args[0] == (tmp_path / "server.js").resolve()
    assert kwargs["args"] == ["--port", "3000"]
    assert kwargs["runtime"] == ["node"]
    assert kwargs["config"].mode == "normal"
    fake_runner.run.assert_awaited_once()


def test_runtime_override(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "app.py").write_text("print('hi')\n")
    (tmp_path / HIDDEN_CONFIG_FILE).write_text(json.dumps({"mode": "normal"}))

    fake_runner = MagicMock()
    fake_runner.run = AsyncMock(return_value=0)
    with patch("runwise.cli.Runner", return_value=fake_runner) as runner_cls:
        result = runner.invoke(app, ["--runtime", "python3 -X dev", "app.py"])

    assert result.exit_code == 0
    assert runner_cls.call_args.kwargs["runtime"] == ["python3", "-X", "dev"]


def quiet_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False)


def test_setup_normal_mode(tmp_path):
    path = tmp_path / HIDDEN_CONFIG_FILE
    with patch("runwise.wizard.Prompt.ask", side_effect=["normal"]):
        config = run_setup(quiet_console(), path=path)
    assert config.mode == "normal"
    assert json.loads(path.read_text())["mode"] == "normal"


def test_setup_gemini_rejects_short_key(tmp_path):
    path = tmp_path / HIDDEN_CONFIG_FILE
    with patch("runwise.wizard.Prompt.ask", side_effect=["gemini", "short", "AIzaSy-1234567890abc"]) as ask:
        config = run_setup(quiet_console(), path=path)
    assert ask.call_count == 3
    assert config.gemini.api_key == "AIzaSy-1234567890abc"
    assert json.loads(path.read_text())["gemini"]["apiKey"] == "AIzaSy-1234567890abc"


def test_reset_replaces_existing_config(tmp_path):
    path = tmp_path / HIDDEN_CONFIG_FILE
    path.write_text(json.dumps({"mode": "gemini", "gemini": {"apiKey": "AIzaSy-old-key-123"}}))
    with patch("runwise.wizard.Prompt.ask", side_effect=["normal"]):
        config = reset_config(quiet_console(), path=path)
    assert config.mode == "normal"
    assert json.loads(path.read_text())["gemini"]["apiKey"] == ""
