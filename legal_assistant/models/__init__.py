"""Request/response schemas for the Legal Assistant API."""
from legal_assistant.models.schemas import (
    AnalysisReportSchema,
    AnswerValue,
    BotReply,
    ChatMessageRequest,
    ChatMessageResponse,
    ChatTurn,
    DocumentUploadResponse,
    GenerateDocumentRequest,
    GenerateDocumentResponse,
    GenerateQuestionsRequest,
    GenerateQuestionsResponse,
    HealthCheckResponse,
    QuestionDescriptor,
    QuestionType,
    WorkflowSessionResponse,
)

__all__ = [
    # Documents
    "AnalysisReportSchema",
    "DocumentUploadResponse",
    "GenerateQuestionsRequest",
    "GenerateQuestionsResponse",
    "GenerateDocumentRequest",
    "GenerateDocumentResponse",
    # Questions / answers
    "QuestionDescriptor",
    "QuestionType",
    "AnswerValue",
    # Chat
    "ChatTurn",
    "ChatMessageRequest",
    "ChatMessageResponse",
    # Workflow
    "BotReply",
    "WorkflowSessionResponse",
    # Health
    "HealthCheckResponse",
]
