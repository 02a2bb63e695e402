"""
Robust JSON parsing for LLM output.

Handles:
- Markdown code fences (```json … ```, ``` … ```)
- Trailing commas before ] or }
- Python-style True / False / None
- Surrounding prose: finds the first balanced [...] or {...} block
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Tuple

logger = logging.getLogger(__name__)


def parse_json_robust(response: str) -> Tuple[bool, Any]:
    """
    Try multiple strategies to parse JSON from potentially messy LLM output.

    Returns ``(success, parsed_value)``.
    """
    if not response:
        return False, None

    text = response.strip()

    # Strategy 1: direct parse
    ok, val = try_json(text)
    if ok:
        return True, val

    # Strategy 2: strip markdown code fences
    stripped = strip_code_fences(text)
    if stripped != text:
        ok, val = try_json(stripped)
        if ok:
            return True, val
        text = stripped

    # Strategy 3: fix common JSON mangling
    ok, val = try_json(fix_json_issues(text))
    if ok:
        return True, val

    # Strategy 4: extract JSON structure from surrounding prose
    for open_b, close_b in (("[", "]"), ("{", "}")):
        fragment = extract_json_structure(text, open_b, close_b)
        if fragment:
            ok, val = try_json(fragment)
            if ok:
                return True, val
            ok, val = try_json(fix_json_issues(fragment))
            if ok:
                return True, val

    logger.warning("parse_json_robust: all strategies failed. Preview: %s", response[:400])
    return False, None


def try_json(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` delimiters that LLMs often wrap output in."""
    text = re.sub(r"^```(?:json|javascript|text)?\s*\n?", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()


_STRING_OR_LITERAL = re.compile(r'"(?:\\.|[^"\\])*"|\b(True|False|None)\b')
_STRING_OR_TRAILING_COMMA = re.compile(r'"(?:\\.|[^"\\])*"|,(\s*[}\]])')
_PY_LITERALS = {"True": "true", "False": "false", "None": "null"}


def fix_json_issues(text: str) -> str:
    """
    Repair the most common JSON mangling patterns from LLMs.

    Only tokens outside string values are touched, so a question like
    "None of the above," survives unchanged.
    """
    text = _STRING_OR_TRAILING_COMMA.sub(
        lambda m: m.group(1) if m.group(1) is not None else m.group(0), text
    )
    text = _STRING_OR_LITERAL.sub(
        lambda m: _PY_LITERALS[m.group(1)] if m.group(1) else m.group(0), text
    )
    return text.strip()


def extract_json_structure(text: str, open_b: str, close_b: str) -> str:
    """
    Find the first complete balanced open_b … close_b structure in *text*.

    Returns the matched fragment, or empty string if not found.
    """
    start = text.find(open_b)
    if start == -1:
        return ""

    depth = 0
    in_string = False
    escape_next = False

    for i, ch in enumerate(text[start:], start=start):
        if escape_next:
            escape_next = False
            continue
        if ch == "\\" and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == open_b:
            depth += 1
        elif ch == close_b:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return ""
