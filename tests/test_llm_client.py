"""Tests for the Ollama client and its error classification."""
import json

import httpx
import pytest

from legal_assistant.exceptions import CompletionError, CompletionErrorKind
from legal_assistant.services.llm_client import CompletionOptions, OllamaClient, classify_status


def _client(handler, **kwargs) -> OllamaClient:
    kwargs.setdefault("api_key", "")
    return OllamaClient(
        base_url="http://ollama.test",
        model="test-model",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def _kind_of(client: OllamaClient) -> CompletionErrorKind:
    with pytest.raises(CompletionError) as excinfo:
        await client.generate("hello", CompletionOptions())
    return excinfo.value.kind


# ---------------------------------------------------------------------------
# Success
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_generate_sends_ollama_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "Hi there"})

    client = _client(handler, api_key="secret")
    text = await client.generate("hello", CompletionOptions(max_tokens=50, temperature=0.1, top_p=0.5))

    assert text == "Hi there"
    assert seen["path"] == "/api/generate"
    assert seen["auth"] == "Bearer secret"
    assert seen["payload"] == {
        "model": "test-model",
        "prompt": "hello",
        "stream": False,
        "options": {"num_predict": 50, "temperature": 0.1, "top_p": 0.5},
    }


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "status_code, kind",
    [
        (400, CompletionErrorKind.VALIDATION),
        (401, CompletionErrorKind.AUTH),
        (403, CompletionErrorKind.AUTH),
        (404, CompletionErrorKind.VALIDATION),
        (422, CompletionErrorKind.VALIDATION),
        (500, CompletionErrorKind.UNEXPECTED),
        (502, CompletionErrorKind.UNAVAILABLE),
        (503, CompletionErrorKind.UNAVAILABLE),
        (504, CompletionErrorKind.UNAVAILABLE),
    ],
)
@pytest.mark.asyncio
async def test_http_status_classification(status_code, kind):
    client = _client(lambda request: httpx.Response(status_code, json={"error": "nope"}))
    assert await _kind_of(client) is kind
    assert classify_status(status_code) is kind


@pytest.mark.asyncio
async def test_connection_refused_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await _kind_of(_client(handler)) is CompletionErrorKind.UNAVAILABLE


@pytest.mark.asyncio
async def test_timeout_is_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert await _kind_of(_client(handler)) is CompletionErrorKind.UNAVAILABLE


@pytest.mark.asyncio
async def test_not_configured_is_unavailable():
    client = OllamaClient(base_url="")
    assert not client.configured
    assert await _kind_of(client) is CompletionErrorKind.UNAVAILABLE


@pytest.mark.asyncio
async def test_malformed_body_is_unexpected():
    client = _client(lambda request: httpx.Response(200, text="<html>"))
    assert await _kind_of(client) is CompletionErrorKind.UNEXPECTED

    client = _client(lambda request: httpx.Response(200, json={"done": True}))
    assert await _kind_of(client) is CompletionErrorKind.UNEXPECTED


def test_only_unexpected_is_not_degradable():
    assert not CompletionErrorKind.UNEXPECTED.degradable
    assert all(
        kind.degradable for kind in CompletionErrorKind if kind is not CompletionErrorKind.UNEXPECTED
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_check_health():
    ok = _client(lambda request: httpx.Response(200, json={"models": []}))
    down = _client(lambda request: httpx.Response(503))
    assert await ok.check_health() is True
    assert await down.check_health() is False
    assert await OllamaClient(base_url="").check_health() is False
