"""
Service providers for FastAPI routes.

Every route receives its collaborators through ``Depends`` so tests can swap
them with ``app.dependency_overrides``.  Services are stateless and shared;
the session registry is created once per process.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends

from legal_assistant.services.chat_service import ChatService
from legal_assistant.services.completion import CompletionService
from legal_assistant.services.document_analyzer import DocumentAnalyzer
from legal_assistant.services.document_generator import DocumentGenerator
from legal_assistant.services.document_parser import DocumentParser
from legal_assistant.services.llm_client import OllamaClient
from legal_assistant.services.question_generator import QuestionGenerator
from legal_assistant.services.session_manager import SessionManager
from legal_assistant.services.workflow import WorkflowEngine

_session_manager: Optional[SessionManager] = None


@lru_cache
def get_completion_service() -> CompletionService:
    return CompletionService(OllamaClient())


@lru_cache
def get_document_parser() -> DocumentParser:
    return DocumentParser()


def get_document_analyzer(
    completion: CompletionService = Depends(get_completion_service),
) -> DocumentAnalyzer:
    return DocumentAnalyzer(completion)


def get_question_generator(
    completion: CompletionService = Depends(get_completion_service),
) -> QuestionGenerator:
    return QuestionGenerator(completion)


def get_document_generator(
    completion: CompletionService = Depends(get_completion_service),
) -> DocumentGenerator:
    return DocumentGenerator(completion)


def get_chat_service(
    completion: CompletionService = Depends(get_completion_service),
) -> ChatService:
    return ChatService(completion)


def build_engine(
    completion: CompletionService,
    parser: Optional[DocumentParser] = None,
) -> WorkflowEngine:
    """Wire a WorkflowEngine whose services all share *completion*."""
    return WorkflowEngine(
        parser=parser or DocumentParser(),
        analyzer=DocumentAnalyzer(completion),
        question_generator=QuestionGenerator(completion),
        document_generator=DocumentGenerator(completion),
        chat_service=ChatService(completion),
    )


def get_session_manager(
    completion: CompletionService = Depends(get_completion_service),
    parser: DocumentParser = Depends(get_document_parser),
) -> SessionManager:
    global _session_manager
    if _session_manager is None:
        _session_manager = SessionManager(build_engine(completion, parser))
    return _session_manager
