"""
Explanation router.

Picks a backend from the configured mode. In gemini mode any remote failure
is logged as a one-line warning and the same error is explained offline
instead, so callers never see a network error.
"""

import logging
from typing import Optional

import httpx

from ..errors import ConfigurationError
from ..models import GEMINI, NORMAL, Config, Explanation
from .gemini import explain_with_gemini
from .normal import explain_with_normal

logger = logging.getLogger(__name__)

__all__ = ["explain", "explain_with_gemini", "explain_with_normal"]


async def explain(error_text: str, config: Config, client: Optional[httpx.AsyncClient] = None) -> Explanation:
    """Explain an error according to the configured mode."""
    if config is None:
        raise ConfigurationError("Configuration is required")

    mode = config.mode or NORMAL

    if mode == NORMAL:
        return explain_with_normal(error_text)

    if mode == GEMINI:
        try:
            text = await explain_with_gemini(error_text, config.gemini, timeout=config.timeout_seconds, client=client)
            return Explanation(backend=GEMINI, text=text)
        except Exception as e:
            reason = str(e).split("\n")[0] or type(e).__name__
            logger.warning(f"Gemini failed, using normal mode: {reason}")
            explanation = explain_with_normal(error_text)
            explanation.fallback_reason = reason
            return explanation

    raise ConfigurationError(f"Unknown explanation mode: {mode}")
