"""
Document analysis: extracted text → analysis text + structured report.

The provider's free-text analysis is parsed into an AnalysisReport; when the
provider is degraded the rule-based analyzer produces both directly.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Optional

from legal_assistant.services.completion import CompletionService
from legal_assistant.services.fallback_analyzer import (
    AnalysisReport,
    analyze_text,
    parse_analysis_text,
    render_report,
)
from legal_assistant.services.prompts import PromptBuilder

logger = logging.getLogger(__name__)

SOURCE_MODEL = "model"
SOURCE_FALLBACK = "fallback"


@dataclasses.dataclass(frozen=True)
class DocumentAnalysis:
    """An analysis retained for question generation and document completion."""

    text: str
    report: AnalysisReport
    source: str = SOURCE_MODEL
    original_name: str = ""
    file_type: str = ""

    @property
    def document_type(self) -> str:
        return self.report.document_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.text,
            "report": self.report.to_dict(),
            "source": self.source,
            "originalName": self.original_name,
            "fileType": self.file_type,
        }


class DocumentAnalyzer:
    """Builds the analysis prompt and degrades to the rule-based analyzer."""

    def __init__(
        self,
        completion: CompletionService,
        prompts: Optional[PromptBuilder] = None,
    ) -> None:
        self.completion = completion
        self.prompts = prompts or PromptBuilder()

    async def analyze(
        self,
        document_text: str,
        original_name: str = "",
        file_type: str = "",
    ) -> DocumentAnalysis:
        prompt = self.prompts.analysis_prompt(document_text)
        fallback_report = None

        def _fallback() -> str:
            nonlocal fallback_report
            fallback_report = analyze_text(document_text)
            return render_report(fallback_report)

        outcome = await self.completion.complete_with_fallback(prompt, _fallback)
        text = outcome.text

        if not outcome.degraded and not text.strip():
            logger.warning("Provider returned an empty analysis, using fallback")
            text = _fallback()

        if fallback_report is not None:
            report = fallback_report
            source = SOURCE_FALLBACK
        else:
            report = parse_analysis_text(text)
            source = SOURCE_MODEL

        logger.info(
            "Analysed %r: type=%s source=%s", original_name or "document",
            report.document_type, source,
        )
        return DocumentAnalysis(
            text=text,
            report=report,
            source=source,
            original_name=original_name,
            file_type=file_type,
        )
