"""
Chat endpoints.

POST /message           - answer a legal question using the recent history.
GET  /document-types    - document kinds the assistant knows about.
GET  /common-questions  - suggested starter questions.
"""
from fastapi import APIRouter, Depends
import logging

from legal_assistant.dependencies.services import get_chat_service
from legal_assistant.models.schemas import (
    ChatMessageRequest,
    ChatMessageResponse,
    CommonQuestionsResponse,
    DocumentTypeInfo,
    DocumentTypesResponse,
)
from legal_assistant.services.chat_service import ChatService
from legal_assistant.utils.helpers import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

DOCUMENT_TYPES = [
    DocumentTypeInfo(
        id="employment-contract",
        name="Employment Contract",
        description="Work agreements, terms of employment, salary details",
    ),
    DocumentTypeInfo(
        id="rental-agreement",
        name="Rental Agreement",
        description="Property rental terms, lease conditions, deposit details",
    ),
    DocumentTypeInfo(
        id="purchase-agreement",
        name="Purchase Agreement",
        description="Property or vehicle purchase contracts",
    ),
    DocumentTypeInfo(
        id="service-agreement",
        name="Service Agreement",
        description="Service provider contracts, terms of service",
    ),
    DocumentTypeInfo(
        id="loan-agreement",
        name="Loan Agreement",
        description="Personal loans, business loans, credit agreements",
    ),
    DocumentTypeInfo(
        id="partnership-agreement",
        name="Partnership Agreement",
        description="Business partnership terms and conditions",
    ),
]

COMMON_QUESTIONS = [
    "What should I look for in an employment contract?",
    "What are my rights as a tenant?",
    "How do I know if a contract is fair?",
    "What happens if I break a contract?",
    "Do I need a lawyer to review this document?",
    "What are the key terms I should understand?",
    "What are the potential risks in this agreement?",
    "Can I negotiate these terms?",
    "What are my obligations under this contract?",
    "How long is this agreement valid?",
]


@router.post("/message", response_model=ChatMessageResponse)
async def send_message(
    body: ChatMessageRequest,
    chat: ChatService = Depends(get_chat_service),
):
    """Reply to a chat message; only the most recent turns are forwarded."""
    history = [(turn.sender, turn.text) for turn in body.conversation_history]
    reply = await chat.reply(body.message, history)
    return ChatMessageResponse(response=reply, timestamp=utc_now())


@router.get("/document-types", response_model=DocumentTypesResponse)
async def document_types():
    return DocumentTypesResponse(document_types=DOCUMENT_TYPES)


@router.get("/common-questions", response_model=CommonQuestionsResponse)
async def common_questions():
    return CommonQuestionsResponse(common_questions=COMMON_QUESTIONS)
