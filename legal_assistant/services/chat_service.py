"""
Legal-assistant chat over a text-completion model.

Only the most recent turns are forwarded.  Text-completion models like to
continue the transcript with invented "Human:"/"Assistant:" turns, so every
reply goes through ``sanitize_chat_response`` before it reaches the user.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from legal_assistant.config import settings
from legal_assistant.exceptions import UserInputError
from legal_assistant.services.completion import CompletionService
from legal_assistant.services.prompts import PromptBuilder

logger = logging.getLogger(__name__)

# (sender, text); sender is "user" for the human side, anything else is the bot
HistoryTurn = Tuple[str, str]

FALLBACK_CHAT_RESPONSE = (
    "I'm your AI Legal Assistant! I can help you understand legal documents, "
    "answer legal questions, and guide you through completing legal forms. "
    "However, the language model is currently unavailable, so I can only offer "
    "basic document analysis right now. How can I assist you today?"
)

_ROLE_LABEL = re.compile(r"^\s*(?:human|assistant|user|system)\s*:\s*", re.IGNORECASE)
_DANGLING_PAREN = re.compile(r"\s*\([^)]*$")


def sanitize_chat_response(text: str, truncate_multi_question: bool = True) -> str:
    """
    Clean a raw completion into a direct answer.

    1. A role label at the very start is removed; the first later line that
       starts with a role label begins a simulated dialogue and everything
       from there on is dropped.
    2. With more than one ``?`` the text is cut after the first one.  This
       also shortens genuine answers that open with a rhetorical question.
    3. A trailing unclosed parenthetical is removed.
    4. Terminal punctuation is ensured.
    """
    lines = (text or "").strip().splitlines()
    kept: List[str] = []
    for index, line in enumerate(lines):
        if _ROLE_LABEL.match(line):
            if index == 0:
                kept.append(_ROLE_LABEL.sub("", line, count=1))
                continue
            break
        kept.append(line)

    cleaned = "\n".join(kept).strip()

    if truncate_multi_question and cleaned.count("?") > 1:
        cleaned = cleaned.split("?", 1)[0] + "?"

    cleaned = _DANGLING_PAREN.sub("", cleaned).strip()

    if cleaned and cleaned[-1] not in ".!?":
        cleaned += "."
    return cleaned


class ChatService:
    """Answers free-form legal questions."""

    def __init__(
        self,
        completion: CompletionService,
        prompts: Optional[PromptBuilder] = None,
        history_limit: Optional[int] = None,
        truncate_multi_question: Optional[bool] = None,
    ) -> None:
        self.completion = completion
        self.prompts = prompts or PromptBuilder()
        self.history_limit = (
            settings.CHAT_HISTORY_LIMIT if history_limit is None else history_limit
        )
        self.truncate_multi_question = (
            settings.CHAT_TRUNCATE_MULTI_QUESTION
            if truncate_multi_question is None
            else truncate_multi_question
        )

    def _recent_turns(self, history: Sequence[HistoryTurn]) -> List[Dict[str, str]]:
        recent = list(history)[-self.history_limit:] if self.history_limit > 0 else []
        return [
            {"role": "user" if sender == "user" else "assistant", "content": text}
            for sender, text in recent
        ]

    async def reply(self, message: str, history: Sequence[HistoryTurn] = ()) -> str:
        if not message or not message.strip():
            raise UserInputError("Message is required")

        prompt = self.prompts.chat_prompt(self._recent_turns(history), message.strip())
        outcome = await self.completion.complete_with_fallback(
            prompt, lambda: FALLBACK_CHAT_RESPONSE
        )
        if outcome.degraded:
            return outcome.text

        cleaned = sanitize_chat_response(outcome.text, self.truncate_multi_question)
        if not cleaned:
            logger.warning("Chat completion was empty after sanitising")
            return FALLBACK_CHAT_RESPONSE
        return cleaned
