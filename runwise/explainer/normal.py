"""
Normal mode explainer using the offline pattern table.

Lightweight, deterministic, no network access.
"""

import logging

from ..models import NORMAL, Explanation
from ..patterns import find_error_pattern

logger = logging.getLogger(__name__)


def explain_with_normal(error_text: str) -> Explanation:
    """Explain an error by pattern matching. Never raises."""
    try:
        pattern = find_error_pattern(error_text)
        return Explanation(backend=NORMAL, text=pattern.explanation, pattern=pattern.name)
    except Exception as e:
        logger.error(f"Pattern matching failed: {e}")
        return Explanation(
            backend=NORMAL,
            text=f"Unable to explain this error. Here's what we know:\n{error_text}",
        )
