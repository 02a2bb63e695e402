"""
Pydantic schemas for request/response validation.

Wire names are camelCase (``documentType``, ``conversationHistory``) to match
the chat front-end; Python attributes stay snake_case.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from enum import Enum


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------

class QuestionType(str, Enum):
    """Input types a generated form field may use."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    EMAIL = "email"
    TEL = "tel"

    @property
    def has_options(self) -> bool:
        return self in (QuestionType.SELECT, QuestionType.RADIO, QuestionType.CHECKBOX)


class QuestionDescriptor(CamelModel):
    """One form field to be answered during document completion."""

    id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1)
    type: QuestionType = QuestionType.TEXT
    required: bool = True
    validation: Optional[str] = None
    example: Optional[str] = None
    options: Optional[List[str]] = None  # only for select / radio / checkbox


AnswerValue = Union[str, List[str]]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

class AnalysisReportSchema(CamelModel):
    """Structured analysis sections."""

    summary: str
    document_type: str
    parties: List[str]
    key_terms: List[str]
    risks: List[str]
    dates: List[str]
    required_info: List[str]


class DocumentUploadResponse(CamelModel):
    """Schema for POST /documents/upload."""

    success: bool = True
    analysis: str
    document_type: str
    file_type: str
    original_name: str
    report: AnalysisReportSchema
    source: str
    timestamp: datetime


class GenerateQuestionsRequest(CamelModel):
    analysis: str = Field(..., min_length=1)
    document_type: Optional[str] = None


class GenerateQuestionsResponse(CamelModel):
    success: bool = True
    questions: List[QuestionDescriptor]
    degraded: bool = False
    timestamp: datetime


class GenerateDocumentRequest(CamelModel):
    analysis: str = Field(..., min_length=1)
    answers: Dict[str, AnswerValue]
    document_type: Optional[str] = None


class GenerateDocumentResponse(CamelModel):
    success: bool = True
    document: str
    degraded: bool = False
    timestamp: datetime


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatTurn(CamelModel):
    """One message of the conversation as the front-end stores it."""

    sender: str = "user"  # "user" or "bot"
    text: str = ""


class ChatMessageRequest(CamelModel):
    message: str = Field(..., min_length=1)
    conversation_history: List[ChatTurn] = []


class ChatMessageResponse(CamelModel):
    response: str
    timestamp: datetime


class DocumentTypeInfo(CamelModel):
    id: str
    name: str
    description: str


class DocumentTypesResponse(CamelModel):
    document_types: List[DocumentTypeInfo]


class CommonQuestionsResponse(CamelModel):
    common_questions: List[str]


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class WorkflowMessageRequest(CamelModel):
    message: str = Field(..., min_length=1)


class BotReply(CamelModel):
    text: str
    download_url: Optional[str] = None
    file_name: Optional[str] = None


class WorkflowSessionResponse(CamelModel):
    """Snapshot of a workflow session plus the replies of the last action."""

    session_id: str
    phase: str
    question_index: Optional[int] = None
    question_count: int = 0
    current_question: Optional[QuestionDescriptor] = None
    analysis: Optional[str] = None
    document_type: Optional[str] = None
    answers: Dict[str, AnswerValue] = {}
    has_document: bool = False
    busy: bool = False
    replies: List[BotReply] = []


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthCheckResponse(BaseModel):
    status: str
    llm: str
    model: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
