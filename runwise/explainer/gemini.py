"""
Gemini explainer.

Sends a short excerpt of the error to Google's Gemini generateContent API and
returns the answer as plain text. Every failure is raised as a
RemoteExplainError with a short reason that never includes the API key.
"""

import logging
import re
from typing import Optional

import httpx

from ..errors import RemoteExplainError, RemoteFailure
from ..models import GeminiConfig

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"

SYSTEM_PROMPT = "You are a debugging assistant for scripts under development. Answer in plain text only. No markdown."

INSTRUCTION = (
    "Briefly explain the error in plain text: one-line summary; cause; "
    "file:line to change; minimal code fix."
)

MAX_EXCERPT_LINES = 6
MAX_EXCERPT_CHARS = 800
TRUNCATED = "... (truncated)"


def truncate_error(text: str, max_lines: int = MAX_EXCERPT_LINES, max_chars: int = MAX_EXCERPT_CHARS) -> str:
    """Keep the first non-blank lines of an error, bounded in size."""
    if not text:
        return ""
    lines = [line.strip() for line in text.strip().splitlines() if line.strip()]
    out = "\n".join(lines[:max_lines])
    if len(out) > max_chars:
        out = out[:max_chars] + TRUNCATED
    elif len(lines) > max_lines:
        out += "\n" + TRUNCATED
    return out


def clean_markdown(text: str) -> str:
    """Strip markdown markup, keeping the readable text."""
    # Fence lines go, code inside them stays
    text = re.sub(r"^\s*```.*$", "", text, flags=re.MULTILINE)
    text = re.sub(r"^\s*#+\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    text = re.sub(r"__([^_]+)__", r"\1", text)
    # Emphasis hugs its text; "a * b * c" is arithmetic
    text = re.sub(r"(?<!\w)[*_](?=\S)([^*_\n]+?)(?<=\S)[*_](?!\w)", r"\1", text)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    lines = [line.rstrip() for line in text.strip().splitlines()]
    return "\n".join(line for line in lines if line.strip())


def build_prompt(error_text: str) -> str:
    snippet = truncate_error(error_text)
    return f"{SYSTEM_PROMPT}\n\n{INSTRUCTION}\n\nError snippet:\n{snippet}"


def build_payload(error_text: str) -> dict:
    return {"contents": [{"parts": [{"text": build_prompt(error_text)}]}]}


def extract_text(data) -> Optional[str]:
    """Pull the generated text out of a generateContent response."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(text, str) or not text.strip():
        return None
    return text.strip()


def _failure_for_status(status: int) -> RemoteExplainError:
    if status in (401, 403):
        return RemoteExplainError(RemoteFailure.AUTH, "Gemini API key error: invalid or expired key", status)
    if status == 429:
        return RemoteExplainError(RemoteFailure.RATE_LIMITED, "Gemini rate limit (429)", status)
    if status >= 500:
        return RemoteExplainError(RemoteFailure.UNAVAILABLE, f"Gemini service unavailable ({status})", status)
    return RemoteExplainError(RemoteFailure.API_ERROR, f"Gemini API error: HTTP {status}", status)


async def explain_with_gemini(
    error_text: str,
    gemini: GeminiConfig,
    timeout: float = 60.0,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Explain an error with Gemini.

    Args:
        error_text: The error message or stack trace
        gemini: Endpoint and API key
        timeout: Request timeout in seconds
        client: Optional shared client; one is created per call otherwise

    Returns:
        The explanation as plain text
    """
    api_key = (gemini.api_key or "").strip()
    if not api_key:
        raise RemoteExplainError(RemoteFailure.AUTH, "Gemini API key not configured. Run: runwise --setup")

    endpoint = gemini.endpoint.strip() or DEFAULT_ENDPOINT

    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await _post(own_client, endpoint, api_key, error_text, timeout)
        else:
            response = await _post(client, endpoint, api_key, error_text, timeout)
    except httpx.TimeoutException as e:
        raise RemoteExplainError(RemoteFailure.TIMEOUT, "Timeout: Gemini did not respond") from e
    except httpx.TransportError as e:
        raise RemoteExplainError(RemoteFailure.NETWORK, "Network error: cannot reach Gemini") from e
    except httpx.HTTPError as e:
        raise RemoteExplainError(RemoteFailure.API_ERROR, f"Gemini API error: {type(e).__name__}") from e

    if response.status_code != 200:
        logger.debug(f"Gemini request failed: HTTP {response.status_code}: {response.text[:1000]}")
        raise _failure_for_status(response.status_code)

    try:
        data = response.json()
    except ValueError:
        data = None

    text = extract_text(data)
    if text is None:
        logger.debug(f"Unexpected Gemini response: {response.text[:1000]}")
        raise RemoteExplainError(RemoteFailure.EMPTY_RESPONSE, "Empty response from Gemini API", response.status_code)

    return clean_markdown(text)


async def _post(client: httpx.AsyncClient, endpoint: str, api_key: str, error_text: str, timeout: float):
    return await client.post(
        endpoint,
        params={"key": api_key},
        headers={"Content-Type": "application/json", "x-goog-api-key": api_key},
        json=build_payload(error_text),
        timeout=timeout,
    )
