"""Tests for the conversation workflow engine."""
import json

import httpx
import pytest

from legal_assistant.dependencies.services import build_engine
from legal_assistant.exceptions import InvalidTransitionError, UserInputError
from legal_assistant.models.schemas import QuestionDescriptor, QuestionType
from legal_assistant.services.chat_service import FALLBACK_CHAT_RESPONSE
from legal_assistant.services.document_analyzer import SOURCE_FALLBACK, SOURCE_MODEL
from legal_assistant.services.workflow import (
    ConversationStarted,
    DocumentUploaded,
    NewDocumentRequested,
    UploadedDocument,
    UserMessage,
    WorkflowPhase,
    WorkflowSession,
    validate_answer,
    wants_to_start,
)

CONTRACT_TEXT = (
    "This Employment Contract is between John Smith and Acme Sdn Bhd "
    "dated 1/1/2024 for RM5000 monthly salary. Signature and address required."
)

CHOICE_QUESTIONS = [
    {"id": "full_name", "question": "Your name?", "type": "text", "required": True},
    {
        "id": "payment_method",
        "question": "How is salary paid?",
        "type": "select",
        "required": True,
        "options": ["Bank Transfer", "Cheque"],
    },
    {
        "id": "benefits",
        "question": "Which benefits apply?",
        "type": "checkbox",
        "required": False,
        "options": ["Medical", "Dental", "Parking"],
    },
]


def scripted(prompt: str):
    """Answers each prompt kind the way a well-behaved model would."""
    if prompt.startswith("You are a legal document analyzer"):
        return "### Document Summary\nAn employment contract.\n\n### Document Type\nEmployment Contract"
    if "Respond ONLY with a valid JSON array" in prompt:
        return json.dumps(CHOICE_QUESTIONS)
    if prompt.startswith("Based on the original document analysis"):
        return "EMPLOYMENT CONTRACT (completed)"
    return "Happy to help"


@pytest.fixture
def contract_upload(tmp_path) -> DocumentUploaded:
    path = tmp_path / "contract.txt"
    path.write_text(CONTRACT_TEXT, encoding="utf-8")
    return DocumentUploaded(UploadedDocument(str(path), ".txt", "contract.txt"))


@pytest.fixture
def offline_engine(offline_completion):
    return build_engine(offline_completion)


@pytest.fixture
def online_engine(online_completion, provider):
    provider.responder = scripted
    return build_engine(online_completion)


async def _consent_pending(engine, upload) -> WorkflowSession:
    result = await engine.handle(WorkflowSession(), ConversationStarted())
    result = await engine.handle(result.session, upload)
    assert result.session.phase is WorkflowPhase.AWAITING_QA_CONSENT
    return result.session


# ---------------------------------------------------------------------------
# Start / upload
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_start_greets_and_awaits_document(offline_engine):
    result = await offline_engine.handle(WorkflowSession(), ConversationStarted())

    assert result.session.phase is WorkflowPhase.AWAITING_DOCUMENT
    assert len(result.replies) == 1
    assert "Legal Assistant" in result.replies[0].text


@pytest.mark.asyncio
async def test_events_before_start_are_invalid(offline_engine, contract_upload):
    with pytest.raises(InvalidTransitionError):
        await offline_engine.handle(WorkflowSession(), UserMessage("hello"))
    with pytest.raises(InvalidTransitionError):
        await offline_engine.handle(WorkflowSession(), contract_upload)


@pytest.mark.asyncio
async def test_upload_without_provider_uses_fallback_analysis(offline_engine, contract_upload):
    seen = []
    started = await offline_engine.handle(WorkflowSession(), ConversationStarted())

    result = await offline_engine.handle(
        started.session, contract_upload, observer=lambda s: seen.append(s.phase)
    )

    session = result.session
    assert seen == [WorkflowPhase.ANALYZING]
    assert session.phase is WorkflowPhase.AWAITING_QA_CONSENT
    assert session.analysis.source == SOURCE_FALLBACK
    assert session.analysis.document_type == "Employment Contract"
    assert "EMPLOYMENT CONTRACT" in result.replies[0].text
    assert '"yes"' in result.replies[1].text


@pytest.mark.asyncio
async def test_unreadable_upload_returns_to_awaiting_document(offline_engine, tmp_path):
    path = tmp_path / "old.doc"
    path.write_bytes(b"\xd0\xcf\x11\xe0")
    started = await offline_engine.handle(WorkflowSession(), ConversationStarted())

    result = await offline_engine.handle(
        started.session, DocumentUploaded(UploadedDocument(str(path), ".doc", "old.doc"))
    )

    assert result.session.phase is WorkflowPhase.AWAITING_DOCUMENT
    assert result.session.analysis is None
    assert "couldn't analyze" in result.replies[0].text


@pytest.mark.asyncio
async def test_blank_model_analysis_uses_fallback(online_engine, provider, contract_upload):
    provider.responder = lambda prompt: "   " if prompt.startswith(
        "You are a legal document analyzer"
    ) else scripted(prompt)

    session = await _consent_pending(online_engine, contract_upload)

    assert session.analysis.source == SOURCE_FALLBACK
    assert session.analysis.text.strip()
    assert session.analysis.document_type == "Employment Contract"

    result = await online_engine.handle(session, UserMessage("yes please"))
    assert result.session.phase is WorkflowPhase.IN_QA
    assert result.session.question_index == 0


# ---------------------------------------------------------------------------
# Consent
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_yes_please_starts_qa(offline_engine, contract_upload):
    session = await _consent_pending(offline_engine, contract_upload)

    result = await offline_engine.handle(session, UserMessage("yes please"))

    assert result.session.phase is WorkflowPhase.IN_QA
    assert result.session.question_index == 0
    assert [q.id for q in result.session.questions] == ["full_name", "ic_number", "address"]
    assert "Question 1 of 3" in result.replies[0].text


@pytest.mark.asyncio
async def test_no_thanks_is_routed_to_chat(offline_engine, contract_upload):
    session = await _consent_pending(offline_engine, contract_upload)

    result = await offline_engine.handle(session, UserMessage("no thanks"))

    assert result.session.phase is WorkflowPhase.AWAITING_QA_CONSENT
    assert result.session.analysis == session.analysis
    assert result.replies[0].text == FALLBACK_CHAT_RESPONSE


@pytest.mark.asyncio
async def test_yes_without_analysis_is_chat(offline_engine):
    started = await offline_engine.handle(WorkflowSession(), ConversationStarted())
    result = await offline_engine.handle(started.session, UserMessage("yes"))
    assert result.session.phase is WorkflowPhase.AWAITING_DOCUMENT


# ---------------------------------------------------------------------------
# Q&A
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_answering_every_question_completes_document(offline_engine, contract_upload):
    seen = []
    session = await _consent_pending(offline_engine, contract_upload)
    session = (await offline_engine.handle(session, UserMessage("start"))).session

    answers = ["Ahmad bin Abdullah", "123456789012", "123 Jalan ABC, Kuala Lumpur"]
    for answer in answers[:-1]:
        session = (await offline_engine.handle(session, UserMessage(answer))).session
        assert session.phase is WorkflowPhase.IN_QA
    result = await offline_engine.handle(
        session, UserMessage(answers[-1]), observer=lambda s: seen.append(s.phase)
    )

    done = result.session
    assert seen == [WorkflowPhase.GENERATING_DOCUMENT]
    assert done.phase is WorkflowPhase.DONE
    assert dict(done.answers) == dict(zip(["full_name", "ic_number", "address"], answers))
    assert done.analysis is None
    assert done.questions == ()
    assert done.artifact.file_name == "completed_contract.txt"
    assert "What is your full name? Ahmad bin Abdullah" in done.artifact.content
    assert "What is your IC number? 123456789012" in done.artifact.content
    assert result.replies[0].file_name == "completed_contract.txt"


@pytest.mark.asyncio
async def test_choice_answers_are_validated(online_engine, contract_upload):
    session = await _consent_pending(online_engine, contract_upload)
    assert session.analysis.source == SOURCE_MODEL

    session = (await online_engine.handle(session, UserMessage("Yes, let's start"))).session
    session = (await online_engine.handle(session, UserMessage("Siti Aminah"))).session

    result = await online_engine.handle(session, UserMessage("cash"))
    assert result.session.question_index == 1
    assert "Bank Transfer, Cheque" in result.replies[0].text

    session = (await online_engine.handle(result.session, UserMessage("bank transfer"))).session
    assert session.answers["payment_method"] == "Bank Transfer"

    result = await online_engine.handle(session, UserMessage("medical, parking"))
    assert result.session.phase is WorkflowPhase.DONE
    assert result.session.answers["benefits"] == ["Medical", "Parking"]
    assert result.session.artifact.content == "EMPLOYMENT CONTRACT (completed)"


@pytest.mark.asyncio
async def test_upload_during_qa_is_refused(offline_engine, contract_upload):
    session = await _consent_pending(offline_engine, contract_upload)
    session = (await offline_engine.handle(session, UserMessage("yes"))).session

    result = await offline_engine.handle(session, contract_upload)

    assert result.session.phase is WorkflowPhase.IN_QA
    assert result.session.question_index == 0
    assert result.session.questions == session.questions
    assert "middle of completing" in result.replies[0].text


@pytest.mark.asyncio
async def test_generation_failure_keeps_last_question(online_engine, provider, contract_upload):
    session = await _consent_pending(online_engine, contract_upload)
    session = (await online_engine.handle(session, UserMessage("yes"))).session
    session = (await online_engine.handle(session, UserMessage("Siti Aminah"))).session
    session = (await online_engine.handle(session, UserMessage("Cheque"))).session

    provider.responder = lambda prompt: httpx.Response(500, json={"error": "boom"})
    result = await online_engine.handle(session, UserMessage("Dental"))

    assert result.session.phase is WorkflowPhase.IN_QA
    assert result.session.question_index == 2
    assert result.session.answers["benefits"] == ["Dental"]
    assert "error generating the document" in result.replies[0].text

    provider.responder = scripted
    result = await online_engine.handle(result.session, UserMessage("Dental"))
    assert result.session.phase is WorkflowPhase.DONE


# ---------------------------------------------------------------------------
# Reset and done
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_new_document_request_clears_session(offline_engine, contract_upload):
    session = await _consent_pending(offline_engine, contract_upload)
    session = (await offline_engine.handle(session, UserMessage("yes"))).session

    result = await offline_engine.handle(session, NewDocumentRequested())

    assert result.session.phase is WorkflowPhase.AWAITING_DOCUMENT
    assert result.session.analysis is None
    assert result.session.questions == ()
    assert dict(result.session.answers) == {}
    assert result.session.history[: len(session.history)] == session.history


@pytest.mark.asyncio
async def test_done_accepts_a_new_upload(offline_engine, contract_upload):
    session = await _consent_pending(offline_engine, contract_upload)
    session = (await offline_engine.handle(session, UserMessage("yes"))).session
    for answer in ("Ahmad bin Abdullah", "123456789012", "Kuala Lumpur"):
        session = (await offline_engine.handle(session, UserMessage(answer))).session
    assert session.phase is WorkflowPhase.DONE

    result = await offline_engine.handle(session, contract_upload)
    assert result.session.phase is WorkflowPhase.AWAITING_QA_CONSENT
    assert result.session.artifact is None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _question(qtype, required=True, options=None) -> QuestionDescriptor:
    return QuestionDescriptor(id="q", question="Q?", type=qtype, required=required, options=options)


def test_validate_answer_rules():
    assert validate_answer(_question(QuestionType.NUMBER), "1,500") == "1,500"
    assert validate_answer(_question(QuestionType.EMAIL), "a@b.my") == "a@b.my"
    assert validate_answer(_question(QuestionType.TEXT, required=False), "  ") == ""
    assert validate_answer(_question(QuestionType.RADIO, options=["Yes", "No"]), "NO") == "No"

    for question, raw in (
        (_question(QuestionType.TEXT), "   "),
        (_question(QuestionType.NUMBER), "twelve"),
        (_question(QuestionType.EMAIL), "not-an-email"),
        (_question(QuestionType.SELECT, options=["A", "B"]), "C"),
        (_question(QuestionType.CHECKBOX, options=["A", "B"]), "A, Z"),
    ):
        with pytest.raises(UserInputError):
            validate_answer(question, raw)


def test_wants_to_start():
    assert wants_to_start("YES please")
    assert wants_to_start("let's start")
    assert not wants_to_start("no thanks")
