"""
HTTP client for the text-completion provider (Ollama ``/api/generate``).

Every failure is classified exactly once, here, into a CompletionErrorKind;
callers decide between fallback and propagation by looking at ``kind`` and
never by re-reading error messages.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Optional

import httpx

from legal_assistant.config import settings
from legal_assistant.exceptions import CompletionError, CompletionErrorKind

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class CompletionOptions:
    """Sampling parameters forwarded to the provider."""

    max_tokens: int = 2000
    temperature: float = 0.7
    top_p: float = 0.9

    @classmethod
    def from_settings(cls) -> "CompletionOptions":
        return cls(
            max_tokens=settings.LLM_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
            top_p=settings.LLM_TOP_P,
        )


# HTTP status → error kind; unlisted non-200 statuses are UNEXPECTED
_STATUS_KINDS: Dict[int, CompletionErrorKind] = {
    400: CompletionErrorKind.VALIDATION,
    401: CompletionErrorKind.AUTH,
    403: CompletionErrorKind.AUTH,
    404: CompletionErrorKind.VALIDATION,   # Ollama: model not found
    422: CompletionErrorKind.VALIDATION,
    502: CompletionErrorKind.UNAVAILABLE,
    503: CompletionErrorKind.UNAVAILABLE,
    504: CompletionErrorKind.UNAVAILABLE,
}


def classify_status(status_code: int) -> CompletionErrorKind:
    return _STATUS_KINDS.get(status_code, CompletionErrorKind.UNEXPECTED)


class OllamaClient:
    """Thin async wrapper around Ollama's non-streaming generate endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (settings.OLLAMA_BASE_URL if base_url is None else base_url).rstrip("/")
        self.model = settings.OLLAMA_LLM_MODEL if model is None else model
        self.api_key = settings.OLLAMA_API_KEY if api_key is None else api_key
        self.timeout_seconds = settings.LLM_TIMEOUT if timeout is None else timeout
        self.timeout = httpx.Timeout(self.timeout_seconds, connect=10.0)
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.model)

    def _headers(self) -> Dict[str, str]:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    def _client(self, timeout: Any = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout or self.timeout,
            headers=self._headers(),
            transport=self._transport,
        )

    async def generate(self, prompt: str, options: CompletionOptions) -> str:
        """
        POST the prompt and return the generated text.

        Raises:
            CompletionError: with ``kind`` set from the failure mode.
        """
        if not self.configured:
            raise CompletionError(
                CompletionErrorKind.UNAVAILABLE,
                "completion provider is not configured",
            )

        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "num_predict": options.max_tokens,
                "temperature": options.temperature,
                "top_p": options.top_p,
            },
        }

        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/api/generate", json=payload)
        except httpx.TimeoutException as exc:
            raise CompletionError(
                CompletionErrorKind.UNAVAILABLE,
                f"request timed out after {self.timeout_seconds:.0f} s",
            ) from exc
        except httpx.NetworkError as exc:
            raise CompletionError(
                CompletionErrorKind.UNAVAILABLE, f"connection error: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CompletionError(
                CompletionErrorKind.UNEXPECTED, f"HTTP error: {exc}"
            ) from exc

        if resp.status_code != 200:
            kind = classify_status(resp.status_code)
            raise CompletionError(
                kind,
                f"provider returned HTTP {resp.status_code}: {_error_detail(resp)}",
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise CompletionError(
                CompletionErrorKind.UNEXPECTED, "provider returned a non-JSON body"
            ) from exc

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise CompletionError(
                CompletionErrorKind.UNEXPECTED, "provider response has no 'response' text"
            )
        return text

    async def check_health(self) -> bool:
        """True when the provider answers ``GET /api/tags`` with 200."""
        if not self.configured:
            return False
        try:
            async with self._client(timeout=10.0) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Completion provider health check failed: %s", exc)
            return False


def _error_detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:300]
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])[:300]
    return resp.text[:300]
