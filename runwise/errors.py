"""
Exception types for runwise.

Configuration problems are fatal to startup. Backend failures are recovered
by the explanation router and never reach the supervisor.
"""

from enum import Enum
from typing import Optional


class RunwiseError(Exception):
    """Base class for runwise errors."""


class ConfigurationError(RunwiseError):
    """Configuration is missing, unreadable, or invalid."""


class ExplainError(RunwiseError):
    """An explanation backend could not produce a result."""


class RemoteFailure(Enum):
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    NETWORK = "network"
    TIMEOUT = "timeout"
    EMPTY_RESPONSE = "empty_response"
    API_ERROR = "api_error"


class RemoteExplainError(ExplainError):
    """The remote explanation service failed.

    The message is short and safe to show: it never contains the API key.
    """

    def __init__(self, reason: RemoteFailure, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code
