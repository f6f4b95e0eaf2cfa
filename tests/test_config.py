"""Tests for runwise configuration."""

import json
import os
from unittest.mock import patch

import pytest

from runwise.config import (
    CONFIG_FILE,
    HIDDEN_CONFIG_FILE,
    create_config,
    default_config,
    get_config_path,
    load_config,
    merge_with_defaults,
    save_config,
    update_config,
    validate_config,
)
from runwise.errors import ConfigurationError
from runwise.models import Config, GeminiConfig


def write_json(path, data):
    path.write_text(json.dumps(data))
    return path


def test_defaults():
    config = default_config()
    assert config.mode == "normal"
    assert config.auto_restart is True
    assert config.ignore_patterns == ("node_modules", ".git", ".env")
    assert config.timeout == 60000
    assert config.timeout_seconds == 60.0


def test_missing_file_returns_none(tmp_path):
    assert load_config(tmp_path / HIDDEN_CONFIG_FILE) is None


def test_load_camel_case_file(tmp_path):
    path = write_json(
        tmp_path / CONFIG_FILE,
        {
            "mode": "gemini",
            "gemini": {"endpoint": "https://proxy.example.com", "apiKey": "AIzaSy-1234567890"},
            "autoRestart": False,
            "ignorePatterns": ["dist/**", "*.log"],
            "timeout": 5000,
        },
    )
    config = load_config(path)
    assert config.mode == "gemini"
    assert config.gemini.api_key == "AIzaSy-1234567890"
    assert config.gemini.endpoint == "https://proxy.example.com"
    assert config.auto_restart is False
    assert config.ignore_patterns == ("dist/**", "*.log")
    assert config.timeout_seconds == 5.0


def test_invalid_json_is_a_configuration_error(tmp_path):
    path = tmp_path / CONFIG_FILE
    path.write_text("{not json")
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_wrong_types_are_a_configuration_error(tmp_path):
    path = write_json(tmp_path / CONFIG_FILE, {"mode": "normal", "timeout": "soon"})
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_non_object_is_a_configuration_error(tmp_path):
    path = write_json(tmp_path / CONFIG_FILE, ["normal"])
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_hidden_file_preferred(tmp_path):
    write_json(tmp_path / CONFIG_FILE, {"mode": "normal"})
    write_json(tmp_path / HIDDEN_CONFIG_FILE, {"mode": "normal"})
    assert get_config_path(tmp_path) == tmp_path / HIDDEN_CONFIG_FILE


def test_visible_file_found(tmp_path):
    write_json(tmp_path / CONFIG_FILE, {"mode": "normal"})
    assert get_config_path(tmp_path) == tmp_path / CONFIG_FILE


def test_new_config_goes_to_hidden_file(tmp_path):
    assert get_config_path(tmp_path) == tmp_path / HIDDEN_CONFIG_FILE


def test_env_key_fills_empty_key(tmp_path):
    path = write_json(tmp_path / CONFIG_FILE, {"mode": "gemini"})
    with patch.dict(os.environ, {"GEMINI_API_KEY": "AIzaSy-from-env"}):
        config = load_config(path)
    assert config.gemini.api_key == "AIzaSy-from-env"


def test_env_key_does_not_override_file_key(tmp_path):
    path = write_json(tmp_path / CONFIG_FILE, {"mode": "gemini", "gemini": {"apiKey": "AIzaSy-from-file"}})
    with patch.dict(os.environ, {"GEMINI_API_KEY": "AIzaSy-from-env"}):
        config = load_config(path)
    assert config.gemini.api_key == "AIzaSy-from-file"


@pytest.mark.parametrize(
    "config",
    [
        Config(mode=None),
        Config(mode=""),
        Config(mode="openai"),
        Config(mode="gemini"),
    ],
)
def test_validate_rejects(config):
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ConfigurationError):
            validate_config(config)


def test_validate_accepts():
    assert validate_config(Config(mode="normal"))
    assert validate_config(Config(mode="gemini", gemini=GeminiConfig(api_key="AIzaSy-1234567890")))


def test_config_is_read_only():
    config = default_config()
    with pytest.raises(Exception):
        config.mode = "gemini"


def test_save_and_load_round_trip_uses_camel_case(tmp_path):
    path = tmp_path / HIDDEN_CONFIG_FILE
    save_config(Config(mode="normal", auto_restart=False), path)
    data = json.loads(path.read_text())
    assert data["autoRestart"] is False
    assert data["gemini"] == {"endpoint": "", "apiKey": ""}
    assert load_config(path).auto_restart is False


def test_merge_with_defaults_keeps_nested_defaults():
    config = merge_with_defaults({"mode": "gemini", "gemini": {"apiKey": "AIzaSy-1234567890"}})
    assert config.gemini.api_key == "AIzaSy-1234567890"
    assert config.gemini.endpoint == ""
    assert config.auto_restart is True


def test_create_config_validates_before_saving(tmp_path):
    path = tmp_path / HIDDEN_CONFIG_FILE
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ConfigurationError):
            create_config("gemini", api_key="", path=path)
    assert not path.exists()


def test_create_and_update_config(tmp_path):
    path = tmp_path / HIDDEN_CONFIG_FILE
    create_config("normal", path=path)
    updated = update_config({"timeout": 1234, "gemini": {"endpoint": "https://proxy.example.com"}}, path=path)
    assert updated.timeout == 1234
    assert updated.gemini.endpoint == "https://proxy.example.com"
    assert load_config(path).timeout == 1234
