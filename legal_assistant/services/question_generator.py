"""
Question generation: analysis text → list of QuestionDescriptor.

The provider is asked for a JSON array.  Whatever comes back is parsed,
normalised and validated; on any failure the fixed three-field default set
is returned instead, so this operation always succeeds with a structurally
valid form.
"""
from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from legal_assistant.exceptions import MalformedResponseError, UserInputError
from legal_assistant.models.schemas import QuestionDescriptor, QuestionType
from legal_assistant.services.completion import CompletionService
from legal_assistant.services.prompts import PromptBuilder
from legal_assistant.utils.json_parser import parse_json_robust

logger = logging.getLogger(__name__)


DEFAULT_QUESTIONS: Tuple[Dict[str, Any], ...] = (
    {
        "id": "full_name",
        "question": "What is your full name?",
        "type": "text",
        "required": True,
        "validation": "Must be at least 2 words",
        "example": "Ahmad bin Abdullah",
    },
    {
        "id": "ic_number",
        "question": "What is your IC number?",
        "type": "text",
        "required": True,
        "validation": "Must be 12 digits",
        "example": "123456789012",
    },
    {
        "id": "address",
        "question": "What is your address?",
        "type": "textarea",
        "required": True,
        "validation": "Complete address required",
        "example": "123 Jalan ABC, Taman XYZ, 12345 Kuala Lumpur",
    },
)

_TRUTHY = frozenset({"true", "yes", "required", "1", "y"})


def default_questions() -> List[QuestionDescriptor]:
    return [QuestionDescriptor(**item) for item in DEFAULT_QUESTIONS]


@dataclasses.dataclass(frozen=True)
class QuestionSet:
    questions: Tuple[QuestionDescriptor, ...]
    degraded: bool = False


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


def normalize_question(item: Any) -> QuestionDescriptor:
    """Coerce one model-produced item into a QuestionDescriptor."""
    if not isinstance(item, dict):
        raise MalformedResponseError(f"question item is not an object: {item!r}")

    field_id = str(item.get("id") or item.get("field_name") or "").strip()
    question = str(item.get("question") or "").strip()
    if not field_id or not question:
        raise MalformedResponseError(f"question item lacks id or question: {item!r}")

    try:
        qtype = QuestionType(str(item.get("type", "text")).strip().lower())
    except ValueError:
        qtype = QuestionType.TEXT

    options: Optional[List[str]] = None
    if qtype.has_options:
        raw_options = item.get("options")
        if isinstance(raw_options, list):
            options = [str(o).strip() for o in raw_options if str(o).strip()]
        if not options:
            qtype = QuestionType.TEXT
            options = None

    return QuestionDescriptor(
        id=field_id,
        question=question,
        type=qtype,
        required=_as_bool(item.get("required", True)),
        validation=_optional_str(item.get("validation")),
        example=_optional_str(item.get("example")),
        options=options,
    )


def parse_questions(response_text: str) -> List[QuestionDescriptor]:
    """
    Parse a provider response into a validated question list.

    Raises:
        MalformedResponseError: not JSON, not a non-empty array of valid
            items, or duplicate ids.
    """
    ok, raw = parse_json_robust(response_text)
    if not ok:
        raise MalformedResponseError("question response is not valid JSON")

    if isinstance(raw, dict) and isinstance(raw.get("questions"), list):
        raw = raw["questions"]
    if not isinstance(raw, list) or not raw:
        raise MalformedResponseError("question response is not a non-empty array")

    questions = [normalize_question(item) for item in raw]

    ids = [q.id for q in questions]
    if len(set(ids)) != len(ids):
        raise MalformedResponseError(f"question ids are not unique: {ids}")
    return questions


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class QuestionGenerator:
    """Requests form questions from the provider with a guaranteed default."""

    def __init__(
        self,
        completion: CompletionService,
        prompts: Optional[PromptBuilder] = None,
    ) -> None:
        self.completion = completion
        self.prompts = prompts or PromptBuilder()

    async def generate(self, analysis: str, document_type: str = "") -> QuestionSet:
        if not analysis or not analysis.strip():
            raise UserInputError("Document analysis is required")

        prompt = self.prompts.questions_prompt(analysis, document_type)
        outcome = await self.completion.complete_with_fallback(
            prompt, lambda: json.dumps(list(DEFAULT_QUESTIONS))
        )

        try:
            questions = parse_questions(outcome.text)
        except MalformedResponseError as exc:
            logger.warning("Question generation fell back to defaults: %s", exc)
            return QuestionSet(questions=tuple(default_questions()), degraded=True)

        logger.info("Generated %d questions (degraded=%s)", len(questions), outcome.degraded)
        return QuestionSet(questions=tuple(questions), degraded=outcome.degraded)
