"""
Prompt templates for the completion provider.

Templates are data: module-level constants exposed as class attributes on
PromptBuilder so they can be tuned (or replaced per instance) without
touching any calling code.  Building a prompt is plain substitution.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Sequence

from legal_assistant.config import settings

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_ANALYSIS_PROMPT = """\
You are a legal document analyzer. Analyze the following legal document and provide:

1. Document Summary (2-3 sentences)
2. Document Type (e.g., Employment Contract, Rental Agreement, etc.)
3. Key Parties Involved
4. Important Terms and Conditions
5. Potential Risks or Concerns
6. Key Dates and Deadlines
7. Required Information for Completion (what needs to be filled in)

Document Text:
{document_text}

Please provide a comprehensive analysis in a structured format, using one \
Markdown heading per numbered section above.\
"""

_QUESTIONS_PROMPT = """\
Based on this legal document analysis, generate a list of specific questions \
that need to be answered to complete the document.

Analysis: {analysis}

Document type: {document_type}

For each question, provide:
1. The question text
2. The field name (for form filling)
3. The field type (text, textarea, number, date, select, radio, checkbox, email, tel)
4. Whether it's required or optional
5. Any validation rules or examples
6. For select, radio and checkbox fields, the list of options

Respond ONLY with a valid JSON array. No explanation, no markdown:
[
  {{
    "id": "field_name",
    "question": "What is your full name?",
    "type": "text",
    "required": true,
    "validation": "Must be at least 2 words",
    "example": "Ahmad bin Abdullah"
  }}
]\
"""

_DOCUMENT_PROMPT = """\
Based on the original document analysis and the provided answers, generate a \
completed legal document.

Document type: {document_type}

Original Analysis: {analysis}

User Answers: {answers}

Please generate a properly formatted legal document with all the information \
filled in. Make sure to:
1. Use proper legal language and formatting
2. Include all the original terms and conditions
3. Fill in all the provided information appropriately
4. Maintain the document structure and legal validity
5. Use Malaysian legal terminology where appropriate

Generate the complete document text.\
"""

_CHAT_SYSTEM_PROMPT = """\
You are a friendly and knowledgeable AI Legal Assistant helping Malaysian \
citizens understand legal matters. Respond naturally and conversationally, \
like a helpful friend who happens to know about law.

IMPORTANT:
- Respond directly to the user's question or request
- Do not ask and answer your own questions in the same response
- Do not create dialogue between multiple speakers
- Do not simulate conversations or Q&A sessions
- Give a direct, helpful response to what the user asked

Key guidelines:
- Be conversational and approachable, not formal or robotic
- Explain legal concepts in simple, everyday language
- Use examples and analogies when helpful
- Be empathetic and understanding of their concerns
- Keep responses concise but comprehensive
- When appropriate, suggest consulting a legal professional for complex matters

Remember: You provide general information only, not specific legal advice.\
"""

_CHAT_DIRECT_INSTRUCTION = (
    'Please respond directly without using "Human:" or "Assistant:" labels. '
    "Just give me a natural response."
)

_ROLE_LABELS: Dict[str, str] = {
    "system": "System",
    "user": "Human",
    "assistant": "Assistant",
}


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class PromptBuilder:
    """Fills the fixed prompt templates."""

    ANALYSIS_PROMPT = _ANALYSIS_PROMPT
    QUESTIONS_PROMPT = _QUESTIONS_PROMPT
    DOCUMENT_PROMPT = _DOCUMENT_PROMPT
    CHAT_SYSTEM_PROMPT = _CHAT_SYSTEM_PROMPT
    CHAT_DIRECT_INSTRUCTION = _CHAT_DIRECT_INSTRUCTION

    def __init__(self, max_document_chars: Optional[int] = None) -> None:
        self.max_document_chars = (
            settings.MAX_PROMPT_DOCUMENT_CHARS
            if max_document_chars is None
            else max_document_chars
        )

    def analysis_prompt(self, document_text: str) -> str:
        return self.ANALYSIS_PROMPT.format(
            document_text=document_text[: self.max_document_chars]
        )

    def questions_prompt(self, analysis: str, document_type: str = "") -> str:
        return self.QUESTIONS_PROMPT.format(
            analysis=analysis,
            document_type=document_type or "unspecified",
        )

    def document_prompt(
        self,
        analysis: str,
        answers: Mapping[str, Any],
        document_type: str = "",
    ) -> str:
        return self.DOCUMENT_PROMPT.format(
            analysis=analysis,
            answers=json.dumps(dict(answers), indent=2, ensure_ascii=False),
            document_type=document_type or "unspecified",
        )

    def chat_prompt(self, turns: Sequence[Mapping[str, str]], message: str) -> str:
        """
        Render a chat transcript for a text-completion model.

        *turns* are ``{"role": "user"|"assistant", "content": ...}`` dicts,
        already limited to the recent history.
        """
        messages = [{"role": "system", "content": self.CHAT_SYSTEM_PROMPT}]
        messages.extend(turns)
        messages.append({"role": "user", "content": message})
        messages.append({"role": "user", "content": self.CHAT_DIRECT_INSTRUCTION})

        rendered = [
            f"{_ROLE_LABELS.get(m['role'], 'Assistant')}: {m['content']}"
            for m in messages
        ]
        return "\n\n".join(rendered) + "\n\nAssistant:"
