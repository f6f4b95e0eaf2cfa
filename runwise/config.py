"""
Configuration for runwise.

Process-wide settings come from environment variables (a .env file is loaded
first) with sensible defaults; logs live in ~/.runwise/. The per-project
session configuration is a JSON file in the working directory, read once
before the supervisor starts.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import GEMINI, MODES, Config, GeminiConfig

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_FILE = "runwise.config.json"
HIDDEN_CONFIG_FILE = ".runwise.config.json"


@dataclass
class Settings:
    """Runwise process settings."""

    # Paths
    data_dir: Path = Path(os.environ.get("RUNWISE_HOME", str(Path.home() / ".runwise")))
    log_file: Path = None

    # Logging
    log_max_bytes: int = int(os.environ.get("LOG_MAX_BYTES", str(5 * 1024 * 1024)))  # 5MB
    log_backup_count: int = int(os.environ.get("LOG_BACKUP_COUNT", "3"))

    # Process management (milliseconds)
    grace_ms: int = int(os.environ.get("RUNWISE_GRACE_MS", "500"))
    settle_ms: int = int(os.environ.get("RUNWISE_SETTLE_MS", "100"))
    debounce_ms: int = int(os.environ.get("RUNWISE_DEBOUNCE_MS", "500"))
    write_settle_ms: int = int(os.environ.get("RUNWISE_WRITE_SETTLE_MS", "300"))
    burst_ms: int = int(os.environ.get("RUNWISE_BURST_MS", "150"))

    def __post_init__(self):
        self.log_file = self.data_dir / "runwise.log"

    def ensure_data_dir(self) -> Path:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir


settings = Settings()


def get_config_path(cwd: Optional[Path] = None) -> Path:
    """Return the config file path for a project directory.

    An existing hidden file wins over the visible one; new configs are
    written to the hidden name.
    """
    cwd = Path(cwd) if cwd else Path.cwd()
    for candidate in (cwd / HIDDEN_CONFIG_FILE, cwd / CONFIG_FILE):
        if candidate.exists():
            return candidate
    return cwd / HIDDEN_CONFIG_FILE


def config_exists(cwd: Optional[Path] = None) -> bool:
    return get_config_path(cwd).exists()


def default_config() -> Config:
    return Config()


def apply_env_overrides(config: Config) -> Config:
    """Fill an empty Gemini key from GEMINI_API_KEY."""
    env_key = os.environ.get("GEMINI_API_KEY", "").strip()
    if config.gemini.api_key or not env_key:
        return config
    return config.model_copy(update={"gemini": config.gemini.model_copy(update={"api_key": env_key})})


def load_config(path: Optional[Path] = None) -> Optional[Config]:
    """Load the session configuration. Returns None if no file exists."""
    config = _read_config_file(Path(path) if path else get_config_path())
    if config is None:
        return None
    return apply_env_overrides(config)


def _read_config_file(path: Path) -> Optional[Config]:
    if not path.exists():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config file {path}: {e}") from e

    logger.debug(f"Loaded configuration from {path}")
    return config


def validate_config(config: Config) -> Config:
    """Check that a configuration can drive a session."""
    if not config.mode:
        raise ConfigurationError('Config must have a "mode" field (normal or gemini)')

    if config.mode not in MODES:
        raise ConfigurationError(f'Mode must be either "normal" or "gemini", got "{config.mode}"')

    if config.mode == GEMINI and not config.gemini.api_key:
        raise ConfigurationError("Gemini mode requires an API key (gemini.apiKey or GEMINI_API_KEY)")

    return config


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """Write the configuration as JSON. Returns the path written."""
    path = Path(path) if path else get_config_path()
    try:
        path.write_text(json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Failed to save config file {path}: {e}") from e
    logger.info(f"Saved configuration to {path}")
    return path


def merge_with_defaults(partial: dict) -> Config:
    """Overlay a partial config dict (camelCase keys) on the defaults."""
    merged = default_config().to_dict()
    gemini = {**merged["gemini"], **(partial.get("gemini") or {})}
    merged.update(partial)
    merged["gemini"] = gemini
    try:
        return Config.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def create_config(mode: str, api_key: str = "", endpoint: str = "", path: Optional[Path] = None) -> Config:
    """Create, validate and save a fresh configuration."""
    config = default_config().model_copy(
        update={"mode": mode, "gemini": GeminiConfig(endpoint=endpoint, api_key=api_key)}
    )
    validate_config(config)
    save_config(config, path)
    return config


def update_config(updates: dict, path: Optional[Path] = None) -> Config:
    """Merge updates into the saved configuration and write it back."""
    current = _read_config_file(Path(path) if path else get_config_path()) or default_config()
    base = current.to_dict()
    merged = {**base, **updates, "gemini": {**base["gemini"], **(updates.get("gemini") or {})}}
    config = merge_with_defaults(merged)
    validate_config(config)
    save_config(config, path)
    return config
