"""
Document endpoints.

POST /upload             - extract + analyse one PDF, DOCX or TXT file.
POST /generate-questions - analysis → form questions.
POST /generate-document  - analysis + answers → completed document text.

These endpoints are stateless; clients that want the server to drive the
conversation use the workflow router instead.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from legal_assistant.config import settings
from legal_assistant.dependencies.services import (
    get_document_analyzer,
    get_document_generator,
    get_document_parser,
    get_question_generator,
)
from legal_assistant.models.schemas import (
    AnalysisReportSchema,
    DocumentUploadResponse,
    GenerateDocumentRequest,
    GenerateDocumentResponse,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
)
from legal_assistant.services.document_analyzer import DocumentAnalyzer
from legal_assistant.services.document_generator import DocumentGenerator
from legal_assistant.services.document_parser import DocumentParser, normalize_file_type
from legal_assistant.services.question_generator import QuestionGenerator
from legal_assistant.utils.helpers import safe_remove, save_upload, utc_now, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

@router.post("/upload", response_model=DocumentUploadResponse)
async def upload_document(
    document: Optional[UploadFile] = File(None),
    file: Optional[UploadFile] = File(None),
    parser: DocumentParser = Depends(get_document_parser),
    analyzer: DocumentAnalyzer = Depends(get_document_analyzer),
) -> DocumentUploadResponse:
    """
    Upload a legal document and analyse it.

    - Multipart field ``document`` (``file`` is accepted too)
    - Max file size: 10 MB (configurable via MAX_FILE_SIZE)
    - The stored copy is removed once the analysis is done, successful or not
    """
    upload = document or file
    file_ext = validate_upload(upload, settings.SUPPORTED_FILE_TYPES)

    file_path, file_size = await save_upload(upload, settings.UPLOAD_DIR, settings.MAX_FILE_SIZE)
    logger.info("Saved %r -> %s (%d bytes)", upload.filename, file_path, file_size)

    try:
        text = await parser.extract_text(file_path, file_ext)
        analysis = await analyzer.analyze(text, upload.filename, normalize_file_type(file_ext))
    finally:
        safe_remove(file_path)

    return DocumentUploadResponse(
        analysis=analysis.text,
        document_type=analysis.document_type,
        file_type=analysis.file_type,
        original_name=upload.filename,
        report=AnalysisReportSchema.model_validate(analysis.report.to_dict()),
        source=analysis.source,
        timestamp=utc_now(),
    )


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------

@router.post(
    "/generate-questions",
    response_model=GenerateQuestionsResponse,
    response_model_exclude_none=True,
)
async def generate_questions(
    body: GenerateQuestionsRequest,
    generator: QuestionGenerator = Depends(get_question_generator),
) -> GenerateQuestionsResponse:
    """Turn an analysis into form questions; always returns a usable set."""
    question_set = await generator.generate(body.analysis, body.document_type or "")
    return GenerateQuestionsResponse(
        questions=list(question_set.questions),
        degraded=question_set.degraded,
        timestamp=utc_now(),
    )


# ---------------------------------------------------------------------------
# Completed document
# ---------------------------------------------------------------------------

@router.post("/generate-document", response_model=GenerateDocumentResponse)
async def generate_document(
    body: GenerateDocumentRequest,
    generator: DocumentGenerator = Depends(get_document_generator),
) -> GenerateDocumentResponse:
    generated = await generator.generate(body.analysis, body.answers, body.document_type or "")
    return GenerateDocumentResponse(
        document=generated.document,
        degraded=generated.degraded,
        timestamp=utc_now(),
    )
