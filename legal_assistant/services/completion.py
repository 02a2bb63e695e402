"""
Completion service adapter.

``complete`` forwards a prompt to the provider and lets every CompletionError
through.  ``complete_with_fallback`` absorbs the degradable kinds
(UNAVAILABLE, AUTH, VALIDATION) into a caller-supplied deterministic
fallback, so partial provider outages never block the workflow; UNEXPECTED
errors still propagate and fail the request.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Optional

from legal_assistant.exceptions import CompletionError, CompletionErrorKind
from legal_assistant.services.llm_client import CompletionOptions, OllamaClient

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class CompletionOutcome:
    """Text produced by the provider, or by the fallback when ``degraded``."""

    text: str
    degraded: bool = False
    error_kind: Optional[CompletionErrorKind] = None


class CompletionService:
    """Stateless adapter shared by every session."""

    def __init__(self, client: Optional[OllamaClient] = None) -> None:
        self.client = client or OllamaClient()

    @property
    def configured(self) -> bool:
        return self.client.configured

    async def complete(
        self, prompt: str, options: Optional[CompletionOptions] = None
    ) -> str:
        return await self.client.generate(prompt, options or CompletionOptions.from_settings())

    async def complete_with_fallback(
        self,
        prompt: str,
        fallback: Callable[[], str],
        options: Optional[CompletionOptions] = None,
    ) -> CompletionOutcome:
        try:
            text = await self.complete(prompt, options)
        except CompletionError as exc:
            if not exc.kind.degradable:
                logger.error("Completion failed: %s", exc)
                raise
            logger.warning("Completion provider degraded (%s), using fallback", exc)
            return CompletionOutcome(text=fallback(), degraded=True, error_kind=exc.kind)
        return CompletionOutcome(text=text)

    async def check_health(self) -> bool:
        return await self.client.check_health()
