"""
Rule-based document analysis used when the completion provider is degraded.

Everything here is deterministic and free of I/O so it can be unit-tested
directly.  The heuristics are ordered rule tables of ``(keywords, value)``
tuples evaluated top to bottom, so individual rules can be tested and
extended without touching the matching logic.

Public API
----------
analyze_text(text)                -> AnalysisReport
render_report(report, notice=...) -> str   (Markdown, fixed sections)
parse_analysis_text(text)         -> AnalysisReport   (free-text model output)
"""
from __future__ import annotations

import dataclasses
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

# ---------------------------------------------------------------------------
# Rule tables (order is significant)
# ---------------------------------------------------------------------------

Rule = Tuple[Tuple[str, ...], str]

DEFAULT_DOCUMENT_TYPE = "Legal Document"

DOCUMENT_TYPE_RULES: Tuple[Rule, ...] = (
    (("employment", "job", "salary"), "Employment Contract"),
    (("rent", "lease", "tenant"), "Rental Agreement"),
    (("purchase", "buy", "sale"), "Purchase Agreement"),
    (("loan", "credit", "borrow"), "Loan Agreement"),
    (("partnership", "business", "company"), "Partnership Agreement"),
    (("service", "consulting", "contractor"), "Service Agreement"),
)

TERM_RULES: Tuple[Rule, ...] = (
    (("payment", "fee", "cost"), "Payment terms and financial obligations"),
    (("termination", "cancel", "end"), "Termination conditions and procedures"),
    (("liability", "responsibility", "obligation"), "Liability and responsibility clauses"),
    (("confidential", "privacy", "secret"), "Confidentiality and privacy provisions"),
    (("penalty", "fine", "breach"), "Penalty and breach of contract clauses"),
)

RISK_RULES: Tuple[Rule, ...] = (
    (("penalty", "fine"), "Potential financial penalties for non-compliance"),
    (("termination", "cancel"), "Risk of contract termination under certain conditions"),
    (("liability", "responsible"), "Potential liability and responsibility obligations"),
    (("confidential", "secret"), "Confidentiality obligations and potential legal consequences"),
)

REQUIRED_INFO_RULES: Tuple[Rule, ...] = (
    (("name", "signature"), "Full names and signatures of all parties"),
    (("address", "location"), "Complete addresses and contact information"),
    (("date", "time"), "Specific dates and time-sensitive information"),
    (("amount", "payment"), "Financial amounts and payment details"),
)

GENERIC_TERMS: Tuple[str, ...] = (
    "Review all terms and conditions carefully",
    "Pay attention to payment terms, deadlines, and obligations",
    "Check for any penalty clauses or termination conditions",
)

GENERIC_RISKS: Tuple[str, ...] = (
    "Ensure you understand all obligations before agreeing",
    "Consider consulting with a legal professional for complex terms",
    "Verify all dates, amounts, and conditions are accurate",
)

GENERIC_REQUIRED_INFO: Tuple[str, ...] = (
    "Full names and contact information",
    "Specific dates and amounts",
    "Any additional details mentioned in the document",
)

PARTIES_PLACEHOLDER = "Parties to be identified from document content"
DATES_PLACEHOLDER = "Review document for specific dates and deadlines"
SUMMARY_PLACEHOLDER = "No summary was provided. Please review the full document carefully."

# Presentation caps applied by render_report (detection is not capped)
MAX_RENDERED_ITEMS = 5
MAX_SUMMARY_MENTIONS = 2

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_NAME = r"[A-Z][a-z]+"

PARTY_PATTERNS: Tuple[re.Pattern, ...] = (
    # "between John Smith", "Party Jane Doe", "agreement between Ali Hassan"
    re.compile(rf"(?i:\b(?:agreement\s+between|party|between))\s+({_NAME}\s+{_NAME})"),
    # "John Smith and", "Acme Trading Sdn &"
    re.compile(rf"({_NAME}\s+{_NAME}(?:\s+{_NAME})?)\s+(?:(?i:and)\b|&)"),
)

_CONNECTOR_WORDS = re.compile(r"(?i)\b(?:agreement\s+between|party|between|and)\b|&")

_MONTHS = (
    "january|february|march|april|may|june|july|"
    "august|september|october|november|december"
)

DATE_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b"),
    re.compile(rf"(?i)\b(?:{_MONTHS})\s+\d{{1,2}},?\s+\d{{4}}\b"),
    re.compile(r"\b\d{4}\b"),
)

AMOUNT_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"\$\d[\d,]*(?:\.\d{2})?"),
    re.compile(r"(?i)\bRM\s*\d[\d,]*(?:\.\d{2})?"),
    re.compile(r"(?i)\b\d{1,3}(?:,\d{3})*(?:\.\d{2})?\s*(?:dollars?|ringgit|usd|myr)\b"),
)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class AnalysisReport:
    """Structured analysis of one document.  Every field is always non-empty."""

    summary: str
    document_type: str
    parties: Tuple[str, ...]
    key_terms: Tuple[str, ...]
    risks: Tuple[str, ...]
    dates: Tuple[str, ...]
    required_info: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "documentType": self.document_type,
            "parties": list(self.parties),
            "keyTerms": list(self.key_terms),
            "risks": list(self.risks),
            "dates": list(self.dates),
            "requiredInfo": list(self.required_info),
        }


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

def rule_fires(keywords: Iterable[str], lower_text: str) -> bool:
    """A rule fires when any of its keywords is a substring of the lowered text."""
    return any(keyword in lower_text for keyword in keywords)


def first_matching_rule(
    rules: Sequence[Rule], lower_text: str, default: str
) -> str:
    for keywords, value in rules:
        if rule_fires(keywords, lower_text):
            return value
    return default


def all_matching_rules(
    rules: Sequence[Rule], lower_text: str, generic: Sequence[str]
) -> Tuple[str, ...]:
    fired = tuple(value for keywords, value in rules if rule_fires(keywords, lower_text))
    return fired or tuple(generic)


def _collect_unique(patterns: Sequence[re.Pattern], text: str) -> List[str]:
    """All matches of *patterns* in order, dropping exact-duplicate strings."""
    seen: List[str] = []
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = match.group(0)
            if value not in seen:
                seen.append(value)
    return seen


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

def classify_document_type(text: str) -> str:
    return first_matching_rule(DOCUMENT_TYPE_RULES, text.lower(), DEFAULT_DOCUMENT_TYPE)


def extract_parties(text: str) -> List[str]:
    """Candidate party names, in order of appearance per pattern (not deduplicated)."""
    parties: List[str] = []
    for pattern in PARTY_PATTERNS:
        for match in pattern.finditer(text):
            name = _CONNECTOR_WORDS.sub("", match.group(1))
            name = " ".join(name.split())
            if len(name) > 3:
                parties.append(name)
    return parties


def extract_dates(text: str) -> List[str]:
    return _collect_unique(DATE_PATTERNS, text)


def extract_amounts(text: str) -> List[str]:
    return _collect_unique(AMOUNT_PATTERNS, text)


def compose_summary(document_type: str, amounts: Sequence[str], dates: Sequence[str]) -> str:
    summary = f"This is a {document_type.lower()} that requires careful review. "
    if amounts:
        mentions = " and ".join(amounts[:MAX_SUMMARY_MENTIONS])
        summary += f"The document involves financial terms including {mentions}. "
    if dates:
        mentions = " and ".join(dates[:MAX_SUMMARY_MENTIONS])
        summary += f"Important dates include {mentions}. "
    summary += "Please review all terms carefully before signing."
    return summary


def analyze_text(text: str) -> AnalysisReport:
    """Derive a complete AnalysisReport from raw document text."""
    text = text or ""
    lower_text = text.lower()

    document_type = classify_document_type(text)
    parties = extract_parties(text)
    dates = extract_dates(text)
    amounts = extract_amounts(text)

    return AnalysisReport(
        summary=compose_summary(document_type, amounts, dates),
        document_type=document_type,
        parties=tuple(parties) or (PARTIES_PLACEHOLDER,),
        key_terms=all_matching_rules(TERM_RULES, lower_text, GENERIC_TERMS),
        risks=all_matching_rules(RISK_RULES, lower_text, GENERIC_RISKS),
        dates=tuple(dates) or (DATES_PLACEHOLDER,),
        required_info=all_matching_rules(
            REQUIRED_INFO_RULES, lower_text, GENERIC_REQUIRED_INFO
        ),
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

FALLBACK_NOTICE = (
    "**Important Note:** This analysis was produced by the built-in rule-based "
    "analyzer because the language model is currently unavailable. For detailed "
    "legal advice, please consult a qualified legal professional."
)


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items[:MAX_RENDERED_ITEMS])


def render_report(report: AnalysisReport, *, notice: bool = True) -> str:
    """Render *report* as the fixed-section Markdown analysis shown to users."""
    sections = [
        "## Document Analysis",
        f"### Document Summary\n{report.summary}",
        f"### Document Type\n{report.document_type}",
        f"### Key Parties Involved\n{_bullets(report.parties)}",
        f"### Important Terms and Conditions\n{_bullets(report.key_terms)}",
        f"### Potential Risks or Concerns\n{_bullets(report.risks)}",
        f"### Key Dates and Deadlines\n{_bullets(report.dates)}",
        f"### Required Information for Completion\n{_bullets(report.required_info)}",
    ]
    if notice:
        sections.append(f"---\n\n{FALLBACK_NOTICE}")
    return "\n\n".join(sections)


# ---------------------------------------------------------------------------
# Parsing free-text analyses
# ---------------------------------------------------------------------------

# (field, heading keyword); the first keyword contained in the heading wins
SECTION_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("summary", "summary"),
    ("document_type", "document type"),
    ("parties", "parties"),
    ("key_terms", "terms"),
    ("risks", "risk"),
    ("dates", "date"),
    ("required_info", "required"),
)

_LIST_FIELDS = frozenset({"parties", "key_terms", "risks", "dates", "required_info"})

_NUMBERED = re.compile(r"^\d{1,2}[.)]\s+")
_HEADING_MARKUP = re.compile(r"^(?:#{1,6}\s*|\d{1,2}[.)]\s*)")
_LIST_MARKER = re.compile(r"^(?:[-*•]\s+|\d{1,2}[.)]\s+)")
_BULLET = re.compile(r"^[-*•]\s+")
_RULE_LINE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_MAX_HEADING_WORDS = 6


def _section_for(label: str) -> Optional[str]:
    lowered = label.lower()
    for field, keyword in SECTION_KEYWORDS:
        if keyword in lowered:
            return field
    return None


def _match_heading(line: str) -> Optional[Tuple[str, str]]:
    """Return ``(field, inline_content)`` when *line* is a section heading."""
    if _BULLET.match(line):
        return None
    marked = line.startswith("#") or line.startswith("**") or bool(_NUMBERED.match(line))
    body = _HEADING_MARKUP.sub("", line).replace("**", "").strip()
    label, sep, rest = body.partition(":")
    if not marked and not sep:
        return None
    if not label.strip() or len(label.split()) > _MAX_HEADING_WORDS:
        return None
    field = _section_for(label)
    if field is None:
        return None
    return field, rest.strip()


def parse_analysis_text(text: str) -> AnalysisReport:
    """
    Split a free-text analysis into an AnalysisReport.

    Heading lines (Markdown ``#``, ``**bold**``, ``1.`` numbering or a short
    ``Label:`` prefix) switch the current section by keyword; other lines are
    collected into it.  A horizontal rule ends the current section.  Fields
    the text does not cover get the analyzer's placeholders.
    """
    collected: Dict[str, List[str]] = {field: [] for field, _ in SECTION_KEYWORDS}
    current: Optional[str] = None

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if _RULE_LINE.match(line):
            current = None
            continue

        heading = _match_heading(line)
        if heading is not None:
            current, inline = heading
            if inline:
                collected[current].append(inline)
            continue

        if current is None:
            continue
        if current in _LIST_FIELDS:
            line = _LIST_MARKER.sub("", line)
        line = line.replace("**", "").strip()
        if line:
            collected[current].append(line)

    summary = " ".join(collected["summary"]).strip()
    if not summary:
        summary = _leading_paragraph(text) or SUMMARY_PLACEHOLDER

    document_type = collected["document_type"][0] if collected["document_type"] else ""

    return AnalysisReport(
        summary=summary,
        document_type=document_type or DEFAULT_DOCUMENT_TYPE,
        parties=tuple(collected["parties"]) or (PARTIES_PLACEHOLDER,),
        key_terms=tuple(collected["key_terms"]) or GENERIC_TERMS,
        risks=tuple(collected["risks"]) or GENERIC_RISKS,
        dates=tuple(collected["dates"]) or (DATES_PLACEHOLDER,),
        required_info=tuple(collected["required_info"]) or GENERIC_REQUIRED_INFO,
    )


def _leading_paragraph(text: str, max_length: int = 300) -> str:
    """First non-heading paragraph of *text*, truncated."""
    for block in (text or "").split("\n\n"):
        block = block.strip()
        if block and not block.startswith("#"):
            block = " ".join(block.split())
            if len(block) > max_length:
                return block[: max_length - 3].rstrip() + "..."
            return block
    return ""
