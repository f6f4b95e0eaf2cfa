"""Tests for the explanation router."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from runwise.errors import ConfigurationError, RemoteExplainError, RemoteFailure
from runwise.explainer import explain
from runwise.explainer.normal import explain_with_normal
from runwise.models import Config, GeminiConfig

ERROR_TEXT = "TypeError: Cannot read properties of null (reading 'method')"


def gemini_config(**kwargs) -> Config:
    return Config(mode="gemini", gemini=GeminiConfig(api_key="AIzaSy-test-key-1234567890"), **kwargs)


@pytest.mark.asyncio
async def test_normal_mode_uses_patterns():
    explanation = await explain(ERROR_TEXT, Config(mode="normal"))
    assert explanation.backend == "normal"
    assert explanation.pattern == "TYPE_ERROR"


@pytest.mark.asyncio
async def test_normal_mode_never_touches_network():
    with patch("runwise.explainer.explain_with_gemini", new=AsyncMock()) as remote, patch(
        "httpx.AsyncClient.send", side_effect=AssertionError("network used")
    ):
        await explain(ERROR_TEXT, Config(mode="normal", gemini=GeminiConfig(api_key="AIzaSy-test-key-1234567890")))
    remote.assert_not_called()


@pytest.mark.asyncio
async def test_missing_mode_defaults_to_normal():
    explanation = await explain(ERROR_TEXT, Config(mode=None))
    assert explanation.backend == "normal"


@pytest.mark.asyncio
async def test_gemini_mode_returns_remote_text():
    with patch("runwise.explainer.explain_with_gemini", new=AsyncMock(return_value="Summary: null access")) as remote:
        explanation = await explain(ERROR_TEXT, gemini_config(timeout=1500))

    assert explanation.backend == "gemini"
    assert explanation.text == "Summary: null access"
    assert not explanation.fell_back
    assert remote.await_args.kwargs["timeout"] == 1.5


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", list(RemoteFailure))
async def test_remote_failure_falls_back_to_identical_local_text(reason, caplog):
    failure = RemoteExplainError(reason, f"Gemini failed: {reason.value}")
    with patch("runwise.explainer.explain_with_gemini", new=AsyncMock(side_effect=failure)):
        explanation = await explain(ERROR_TEXT, gemini_config())

    assert explanation.text == explain_with_normal(ERROR_TEXT).text
    assert explanation.backend == "normal"
    assert explanation.fallback_reason == f"Gemini failed: {reason.value}"
    assert "using normal mode" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_remote_exception_still_falls_back():
    with patch("runwise.explainer.explain_with_gemini", new=AsyncMock(side_effect=ValueError("odd"))):
        explanation = await explain("Error: Cannot find module './x'", gemini_config())
    assert explanation.pattern == "MODULE_NOT_FOUND"
    assert explanation.fell_back


@pytest.mark.asyncio
async def test_fallback_through_real_http_failure():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
    async with client:
        explanation = await explain(ERROR_TEXT, gemini_config(), client=client)
    assert explanation.text == explain_with_normal(ERROR_TEXT).text
    assert "unavailable" in explanation.fallback_reason


@pytest.mark.asyncio
async def test_unknown_mode_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        await explain(ERROR_TEXT, Config(mode="openai"))


@pytest.mark.asyncio
async def test_missing_configuration_is_an_error():
    with pytest.raises(ConfigurationError):
        await explain(ERROR_TEXT, None)
