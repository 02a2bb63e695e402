"""
Completed-document generation from an analysis and the collected answers.

When the provider is degraded a plain template document is produced from the
same inputs, so the workflow can always finish.  Both paths are
deterministic for identical inputs given a deterministic provider.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Mapping, Optional

from legal_assistant.exceptions import UserInputError
from legal_assistant.models.schemas import AnswerValue
from legal_assistant.services.completion import CompletionService
from legal_assistant.services.prompts import PromptBuilder

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class GeneratedText:
    document: str
    degraded: bool = False


def field_label(field_id: str) -> str:
    """``"ic_number"`` -> ``"Ic Number"``."""
    return " ".join(part.capitalize() for part in field_id.replace("-", "_").split("_") if part)


def format_answer(value: AnswerValue) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or "(none)"
    return str(value).strip() or "(not provided)"


def render_fallback_document(
    analysis: str,
    answers: Mapping[str, AnswerValue],
    document_type: str = "",
    labels: Optional[Mapping[str, str]] = None,
) -> str:
    """Template document used when the provider cannot draft one."""
    labels = labels or {}
    title = (document_type or "Legal Document").upper()

    lines = [
        f"COMPLETED {title}",
        "=" * (len(title) + 10),
        "",
        "PARTICULARS PROVIDED",
        "--------------------",
    ]
    for field_id, value in answers.items():
        label = (labels.get(field_id) or field_label(field_id)).strip()
        separator = " " if label.endswith("?") else ": "
        lines.append(f"{label}{separator}{format_answer(value)}")

    lines.extend([
        "",
        "DOCUMENT ANALYSIS",
        "-----------------",
        analysis.strip(),
        "",
        "NOTE: This document was assembled from a template because the language "
        "model is currently unavailable. Please have it reviewed by a qualified "
        "legal professional before signing.",
    ])
    return "\n".join(lines)


class DocumentGenerator:
    """Drafts the completed document via the provider."""

    def __init__(
        self,
        completion: CompletionService,
        prompts: Optional[PromptBuilder] = None,
    ) -> None:
        self.completion = completion
        self.prompts = prompts or PromptBuilder()

    async def generate(
        self,
        analysis: str,
        answers: Mapping[str, AnswerValue],
        document_type: str = "",
        labels: Optional[Mapping[str, str]] = None,
    ) -> GeneratedText:
        if not analysis or not analysis.strip():
            raise UserInputError("Analysis and answers are required")
        if answers is None:
            raise UserInputError("Analysis and answers are required")

        frozen_answers = dict(answers)
        prompt = self.prompts.document_prompt(analysis, frozen_answers, document_type)
        outcome = await self.completion.complete_with_fallback(
            prompt,
            lambda: render_fallback_document(analysis, frozen_answers, document_type, labels),
        )
        document, degraded = outcome.text, outcome.degraded
        if not degraded and not document.strip():
            logger.warning("Provider returned an empty document, using template")
            document = render_fallback_document(analysis, frozen_answers, document_type, labels)
            degraded = True

        logger.info(
            "Generated %d-character document (degraded=%s)",
            len(document),
            degraded,
        )
        return GeneratedText(document=document, degraded=degraded)
