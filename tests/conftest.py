"""
Shared fixtures for the Legal Assistant test suite.

No test talks to a real completion provider.  ``offline_completion`` is a
CompletionService with no provider configured (every call degrades to the
rule-based fallbacks); ``provider`` is an in-process stand-in for the Ollama
HTTP API mounted through ``httpx.MockTransport``, whose answers each test can
script.
"""
from __future__ import annotations

import json
from typing import AsyncGenerator, Callable, List, Union

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from legal_assistant.config import settings
from legal_assistant.dependencies.services import (
    build_engine,
    get_completion_service,
    get_session_manager,
)
from legal_assistant.main import app
from legal_assistant.services.completion import CompletionService
from legal_assistant.services.llm_client import OllamaClient
from legal_assistant.services.session_manager import SessionManager

Responder = Callable[[str], Union[str, httpx.Response]]


class ScriptedProvider:
    """
    Fake Ollama server.  ``responder`` maps the prompt to either the generated
    text or a full ``httpx.Response`` (to simulate HTTP failures).
    """

    def __init__(self, responder: Responder = lambda prompt: "OK") -> None:
        self.responder = responder
        self.requests: List[dict] = []

    @property
    def prompts(self) -> List[str]:
        return [r["prompt"] for r in self.requests]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "test-model"}]})

        payload = json.loads(request.content)
        self.requests.append(payload)
        result = self.responder(payload["prompt"])
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json={"model": payload["model"], "response": result})


# ---------------------------------------------------------------------------
# Completion services
# ---------------------------------------------------------------------------

@pytest.fixture
def offline_completion() -> CompletionService:
    return CompletionService(OllamaClient(base_url=""))


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def online_completion(provider: ScriptedProvider) -> CompletionService:
    client = OllamaClient(
        base_url="http://ollama.test",
        model="test-model",
        api_key="",
        transport=httpx.MockTransport(provider),
    )
    return CompletionService(client)


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Point uploads at a per-test directory."""
    directory = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(directory))
    return directory


async def _client_for(completion: CompletionService) -> AsyncGenerator[AsyncClient, None]:
    manager = SessionManager(build_engine(completion))
    app.dependency_overrides[get_completion_service] = lambda: completion
    app.dependency_overrides[get_session_manager] = lambda: manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(offline_completion: CompletionService) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the app with no completion provider."""
    async for ac in _client_for(offline_completion):
        yield ac


@pytest_asyncio.fixture
async def online_client(online_completion: CompletionService) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient wired to the app and the scripted provider."""
    async for ac in _client_for(online_completion):
        yield ac
