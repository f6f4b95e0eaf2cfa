"""
Data models for runwise.

The session configuration is a frozen pydantic model whose aliases match the
camelCase keys of the JSON config file. Error events and explanations are
transient dataclasses that live only as long as one explanation cycle.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

NORMAL = "normal"
GEMINI = "gemini"
MODES = (NORMAL, GEMINI)

DEFAULT_IGNORE_PATTERNS = ("node_modules", ".git", ".env")
DEFAULT_TIMEOUT_MS = 60000


class GeminiConfig(BaseModel):
    """Credentials and endpoint for the Gemini explainer."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    endpoint: str = ""
    api_key: str = Field(default="", alias="apiKey")


class Config(BaseModel):
    """Session configuration, read-only once the supervisor starts."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    mode: Optional[str] = NORMAL
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    auto_restart: bool = Field(default=True, alias="autoRestart")
    ignore_patterns: tuple[str, ...] = Field(default=DEFAULT_IGNORE_PATTERNS, alias="ignorePatterns")
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, ge=1)  # milliseconds

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Stream(Enum):
    """Where an error event came from."""

    STDOUT = "stdout"
    STDERR = "stderr"
    EXIT = "exit"
    SPAWN = "spawn"


@dataclass
class ErrorEvent:
    """A detected error occurrence."""

    text: str
    stream: Stream
    generation: int = 0
    detected_at: float = field(default_factory=time.monotonic)

    @property
    def summary(self) -> str:
        lines = [line.strip() for line in self.text.splitlines() if line.strip()]
        if not lines:
            return "Unknown error"
        # A Python traceback ends with the exception line
        if lines[0].startswith("Traceback (most recent call last)") and len(lines) > 1:
            return lines[-1]
        return lines[0]


@dataclass
class Explanation:
    """The result of running an error through a backend."""

    backend: str
    text: str
    pattern: Optional[str] = None
    fallback_reason: Optional[str] = None

    @property
    def fell_back(self) -> bool:
        return self.fallback_reason is not None


class PromptAnswer(Enum):
    YES = "yes"
    NO = "no"
    CANCELLED = "cancelled"
    INTERRUPTED = "interrupted"
