"""
Conversation workflow: upload → analyse → consent → Q&A → completed document.

``WorkflowEngine.handle`` takes the current ``WorkflowSession`` and one event
and returns a new session plus the bot replies for that event.  Sessions are
immutable values; the engine keeps no per-conversation state of its own, so
persistence and serialisation of concurrent events belong to the caller
(see ``session_manager``).

Phases
------
    IDLE ──start──▶ AWAITING_DOCUMENT ──upload──▶ ANALYZING
    ANALYZING ──ok──▶ AWAITING_QA_CONSENT   (error ──▶ AWAITING_DOCUMENT)
    AWAITING_QA_CONSENT ──"yes"/"start"──▶ IN_QA(0)
    IN_QA(i) ──valid answer──▶ IN_QA(i+1) … ──last──▶ GENERATING_DOCUMENT ──▶ DONE

ANALYZING and GENERATING_DOCUMENT are transient: they are reported through
the observer callback while the work runs but never returned.
"""
from __future__ import annotations

import dataclasses
import enum
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from legal_assistant.exceptions import (
    CompletionError,
    ExtractionError,
    InvalidTransitionError,
    UnsupportedFormatError,
    UserInputError,
)
from legal_assistant.models.schemas import AnswerValue, QuestionDescriptor, QuestionType
from legal_assistant.services.chat_service import ChatService, HistoryTurn
from legal_assistant.services.document_analyzer import DocumentAnalysis, DocumentAnalyzer
from legal_assistant.services.document_generator import DocumentGenerator
from legal_assistant.services.document_parser import DocumentParser, normalize_file_type
from legal_assistant.services.question_generator import QuestionGenerator

logger = logging.getLogger(__name__)

MAX_HISTORY_TURNS = 50

GREETING = (
    "Hello! I'm your AI Legal Assistant. I can help you understand legal documents, "
    "answer legal questions, and guide you through completing legal forms. "
    "How can I assist you today?"
)
CONSENT_PROMPT = (
    "I've analyzed your document! I can see there are some fields that need to be "
    "filled in. Would you like me to guide you through a Q&A session to complete "
    'the document? Just say "yes" to start, or ask me any questions about the '
    "analysis first."
)
NEW_DOCUMENT_PROMPT = "Sure. Please upload the next document you would like me to analyze."
UPLOAD_DURING_QA = (
    "We're in the middle of completing your current document. Please answer the "
    "current question, or start over with a new document first."
)
ANALYSIS_FAILED = "Sorry, I couldn't analyze your document. {reason}"
ANALYSIS_ERROR = "There was an error analyzing your document. Please try again."
QUESTIONS_ERROR = "There was an error generating questions. Please try again."
GENERATION_ERROR = (
    "There was an error generating the document. Send your last answer again to retry."
)
CHAT_ERROR = "Sorry, I couldn't process that message. Please try again."
DOCUMENT_READY = (
    "**Document completed successfully!**\n\n"
    "Your document has been generated with all the information you provided. "
    "You can download it as {file_name}."
)

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_CONSENT_WORDS = ("yes", "start")


# ---------------------------------------------------------------------------
# Session value
# ---------------------------------------------------------------------------

class WorkflowPhase(str, enum.Enum):
    IDLE = "idle"
    AWAITING_DOCUMENT = "awaiting_document"
    ANALYZING = "analyzing"
    AWAITING_QA_CONSENT = "awaiting_qa_consent"
    IN_QA = "in_qa"
    GENERATING_DOCUMENT = "generating_document"
    DONE = "done"


TRANSIENT_PHASES = frozenset({WorkflowPhase.ANALYZING, WorkflowPhase.GENERATING_DOCUMENT})
UPLOAD_PHASES = frozenset({
    WorkflowPhase.AWAITING_DOCUMENT,
    WorkflowPhase.AWAITING_QA_CONSENT,
    WorkflowPhase.DONE,
})


@dataclasses.dataclass(frozen=True)
class GeneratedDocument:
    """Downloadable result of a completed session."""

    file_name: str
    content: str
    generated_at: datetime


@dataclasses.dataclass(frozen=True)
class WorkflowSession:
    phase: WorkflowPhase = WorkflowPhase.IDLE
    question_index: Optional[int] = None
    analysis: Optional[DocumentAnalysis] = None
    questions: Tuple[QuestionDescriptor, ...] = ()
    answers: Mapping[str, AnswerValue] = dataclasses.field(default_factory=dict)
    history: Tuple[HistoryTurn, ...] = ()
    artifact: Optional[GeneratedDocument] = None

    @property
    def current_question(self) -> Optional[QuestionDescriptor]:
        if self.phase is not WorkflowPhase.IN_QA or self.question_index is None:
            return None
        return self.questions[self.question_index]

    def with_history(self, *turns: HistoryTurn) -> "WorkflowSession":
        history = (self.history + turns)[-MAX_HISTORY_TURNS:]
        return dataclasses.replace(self, history=history)


# ---------------------------------------------------------------------------
# Events and results
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class UploadedDocument:
    """A document already written to disk by the caller, who also removes it."""

    file_path: str
    extension: str
    original_name: str = ""


@dataclasses.dataclass(frozen=True)
class ConversationStarted:
    pass


@dataclasses.dataclass(frozen=True)
class DocumentUploaded:
    document: UploadedDocument


@dataclasses.dataclass(frozen=True)
class UserMessage:
    text: str


@dataclasses.dataclass(frozen=True)
class NewDocumentRequested:
    pass


WorkflowEvent = Union[ConversationStarted, DocumentUploaded, UserMessage, NewDocumentRequested]


@dataclasses.dataclass(frozen=True)
class Reply:
    text: str
    file_name: Optional[str] = None  # set when the reply offers the artifact


@dataclasses.dataclass(frozen=True)
class WorkflowResult:
    session: WorkflowSession
    replies: Tuple[Reply, ...]


PhaseObserver = Callable[[WorkflowSession], None]


# ---------------------------------------------------------------------------
# Answer validation
# ---------------------------------------------------------------------------

def _match_option(value: str, options: List[str]) -> Optional[str]:
    folded = value.strip().casefold()
    for option in options:
        if option.casefold() == folded:
            return option
    return None


def validate_answer(question: QuestionDescriptor, raw: str) -> AnswerValue:
    """
    Check *raw* against *question* and return the value to record.

    Choice answers are returned in the option's canonical spelling; checkbox
    answers are comma-separated and come back as a list.

    Raises:
        UserInputError: the answer is not acceptable; the message says why.
    """
    value = (raw or "").strip()
    if not value:
        if question.required:
            raise UserInputError("This question is required. Please provide an answer.")
        return [] if question.type is QuestionType.CHECKBOX else ""

    if question.type is QuestionType.NUMBER:
        try:
            float(value.replace(",", ""))
        except ValueError:
            raise UserInputError("Please enter a number.") from None
    elif question.type is QuestionType.EMAIL:
        if not _EMAIL.match(value):
            raise UserInputError("Please enter a valid email address.")
    elif question.type in (QuestionType.SELECT, QuestionType.RADIO):
        options = question.options or []
        matched = _match_option(value, options)
        if matched is None:
            raise UserInputError(f"Please choose one of: {', '.join(options)}.")
        return matched
    elif question.type is QuestionType.CHECKBOX:
        options = question.options or []
        chosen: List[str] = []
        for part in (p.strip() for p in value.split(",")):
            if not part:
                continue
            matched = _match_option(part, options)
            if matched is None:
                raise UserInputError(
                    f"{part!r} is not an option. Choose from: {', '.join(options)}."
                )
            if matched not in chosen:
                chosen.append(matched)
        if not chosen and question.required:
            raise UserInputError("This question is required. Please provide an answer.")
        return chosen
    return value


def wants_to_start(message: str) -> bool:
    lowered = message.lower()
    return any(word in lowered for word in _CONSENT_WORDS)


# ---------------------------------------------------------------------------
# Reply formatting
# ---------------------------------------------------------------------------

def format_analysis_reply(analysis: DocumentAnalysis) -> str:
    return (
        "## Document Analysis Complete!\n\n"
        f"**Document Type:** {analysis.document_type.upper()}\n\n"
        f"{analysis.text}\n\n"
        "---\n\n"
        "## Next Steps\n"
        "Would you like me to help you complete this document? I can guide you "
        "through filling in the required information step by step."
    )


def format_question(question: QuestionDescriptor, index: int, total: int) -> str:
    lines = [
        f"**Question {index + 1} of {total}:**",
        "",
        question.question,
        "",
        "*(Required)*" if question.required else "*(Optional)*",
    ]
    if question.options:
        lines.append(f"Options: {', '.join(question.options)}")
    if question.example:
        lines.append(f"*Example: {question.example}*")
    lines.extend(["", "Please provide your answer:"])
    return "\n".join(lines)


def artifact_file_name(original_name: str) -> str:
    stem = Path(original_name).stem if original_name else ""
    return f"completed_{stem or 'document'}.txt"


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class WorkflowEngine:
    """Drives one conversation through the document-completion workflow."""

    def __init__(
        self,
        parser: DocumentParser,
        analyzer: DocumentAnalyzer,
        question_generator: QuestionGenerator,
        document_generator: DocumentGenerator,
        chat_service: ChatService,
    ) -> None:
        self.parser = parser
        self.analyzer = analyzer
        self.question_generator = question_generator
        self.document_generator = document_generator
        self.chat_service = chat_service

    async def handle(
        self,
        session: WorkflowSession,
        event: WorkflowEvent,
        observer: Optional[PhaseObserver] = None,
    ) -> WorkflowResult:
        if session.phase in TRANSIENT_PHASES:
            raise InvalidTransitionError(f"Session is busy ({session.phase.value})")

        if isinstance(event, NewDocumentRequested):
            return self._reset(session)

        if session.phase is WorkflowPhase.IDLE:
            if isinstance(event, ConversationStarted):
                started = dataclasses.replace(session, phase=WorkflowPhase.AWAITING_DOCUMENT)
                return _result(started.with_history(("bot", GREETING)), GREETING)
            raise InvalidTransitionError("Conversation has not been started")

        if isinstance(event, ConversationStarted):
            raise InvalidTransitionError("Conversation already started")
        if isinstance(event, DocumentUploaded):
            return await self._on_upload(session, event.document, observer)
        if isinstance(event, UserMessage):
            return await self._on_message(session, event.text, observer)
        raise InvalidTransitionError(f"Unknown event {type(event).__name__}")

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def _reset(self, session: WorkflowSession) -> WorkflowResult:
        fresh = WorkflowSession(phase=WorkflowPhase.AWAITING_DOCUMENT, history=session.history)
        return _result(fresh.with_history(("bot", NEW_DOCUMENT_PROMPT)), NEW_DOCUMENT_PROMPT)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def _on_upload(
        self,
        session: WorkflowSession,
        upload: UploadedDocument,
        observer: Optional[PhaseObserver],
    ) -> WorkflowResult:
        session = session.with_history(("user", f"File: {upload.original_name or 'document'}"))
        if session.phase is WorkflowPhase.IN_QA:
            return _result(session.with_history(("bot", UPLOAD_DURING_QA)), UPLOAD_DURING_QA)
        if session.phase not in UPLOAD_PHASES:
            raise InvalidTransitionError(f"Cannot upload in phase {session.phase.value}")

        _notify(observer, dataclasses.replace(session, phase=WorkflowPhase.ANALYZING))

        failed = dataclasses.replace(
            session,
            phase=WorkflowPhase.AWAITING_DOCUMENT,
            question_index=None,
            analysis=None,
            questions=(),
        )
        file_type = normalize_file_type(upload.extension)
        try:
            text = await self.parser.extract_text(upload.file_path, file_type)
            analysis = await self.analyzer.analyze(text, upload.original_name, file_type)
        except (UnsupportedFormatError, ExtractionError) as exc:
            logger.warning("Upload %r rejected: %s", upload.original_name, exc)
            message = ANALYSIS_FAILED.format(reason=exc)
            return _result(failed.with_history(("bot", message)), message)
        except CompletionError as exc:
            logger.error("Analysis of %r failed: %s", upload.original_name, exc)
            return _result(failed.with_history(("bot", ANALYSIS_ERROR)), ANALYSIS_ERROR)

        analysed = WorkflowSession(
            phase=WorkflowPhase.AWAITING_QA_CONSENT,
            analysis=analysis,
            history=session.history,
        )
        analysis_reply = format_analysis_reply(analysis)
        return _result(
            analysed.with_history(("bot", analysis_reply), ("bot", CONSENT_PROMPT)),
            analysis_reply,
            CONSENT_PROMPT,
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def _on_message(
        self,
        session: WorkflowSession,
        text: str,
        observer: Optional[PhaseObserver],
    ) -> WorkflowResult:
        if not text or not text.strip():
            raise UserInputError("Message is required")

        prior_history = session.history
        session = session.with_history(("user", text))

        if session.phase is WorkflowPhase.IN_QA:
            return await self._on_answer(session, text, observer)
        if (
            session.phase is WorkflowPhase.AWAITING_QA_CONSENT
            and session.analysis is not None
            and wants_to_start(text)
        ):
            return await self._start_qa(session)
        return await self._chat(session, text, prior_history)

    async def _chat(
        self,
        session: WorkflowSession,
        text: str,
        prior_history: Tuple[HistoryTurn, ...],
    ) -> WorkflowResult:
        try:
            reply = await self.chat_service.reply(text, prior_history)
        except CompletionError as exc:
            logger.error("Chat completion failed: %s", exc)
            reply = CHAT_ERROR
        return _result(session.with_history(("bot", reply)), reply)

    async def _start_qa(self, session: WorkflowSession) -> WorkflowResult:
        analysis = session.analysis
        try:
            question_set = await self.question_generator.generate(
                analysis.text, analysis.document_type
            )
        except CompletionError as exc:
            logger.error("Question generation failed: %s", exc)
            return _result(session.with_history(("bot", QUESTIONS_ERROR)), QUESTIONS_ERROR)

        questions = question_set.questions
        in_qa = dataclasses.replace(
            session,
            phase=WorkflowPhase.IN_QA,
            question_index=0,
            questions=questions,
            answers={},
            artifact=None,
        )
        prompt = format_question(questions[0], 0, len(questions))
        logger.info("Q&A started with %d questions", len(questions))
        return _result(in_qa.with_history(("bot", prompt)), prompt)

    async def _on_answer(
        self,
        session: WorkflowSession,
        text: str,
        observer: Optional[PhaseObserver],
    ) -> WorkflowResult:
        index = session.question_index
        question = session.questions[index]
        total = len(session.questions)

        try:
            value = validate_answer(question, text)
        except UserInputError as exc:
            reprompt = f"{exc}\n\n{format_question(question, index, total)}"
            return _result(session.with_history(("bot", reprompt)), reprompt)

        answers: Dict[str, AnswerValue] = dict(session.answers)
        answers[question.id] = value
        answered = dataclasses.replace(session, answers=answers)

        if index + 1 < total:
            next_question = session.questions[index + 1]
            prompt = (
                f"Got it! **Answer {index + 1} recorded.**\n\n"
                f"{format_question(next_question, index + 1, total)}"
            )
            advanced = dataclasses.replace(answered, question_index=index + 1)
            return _result(advanced.with_history(("bot", prompt)), prompt)

        return await self._generate_document(answered, observer)

    async def _generate_document(
        self,
        session: WorkflowSession,
        observer: Optional[PhaseObserver],
    ) -> WorkflowResult:
        _notify(observer, dataclasses.replace(session, phase=WorkflowPhase.GENERATING_DOCUMENT))

        analysis = session.analysis
        try:
            generated = await self.document_generator.generate(
                analysis.text,
                dict(session.answers),
                analysis.document_type,
                labels={q.id: q.question for q in session.questions},
            )
        except CompletionError as exc:
            logger.error("Document generation failed: %s", exc)
            return _result(session.with_history(("bot", GENERATION_ERROR)), GENERATION_ERROR)

        artifact = GeneratedDocument(
            file_name=artifact_file_name(analysis.original_name),
            content=generated.document,
            generated_at=datetime.now(timezone.utc),
        )
        done = dataclasses.replace(
            session,
            phase=WorkflowPhase.DONE,
            question_index=None,
            analysis=None,
            questions=(),
            artifact=artifact,
        )
        message = DOCUMENT_READY.format(file_name=artifact.file_name)
        logger.info("Document %s generated (degraded=%s)", artifact.file_name, generated.degraded)
        return WorkflowResult(
            session=done.with_history(("bot", message)),
            replies=(Reply(text=message, file_name=artifact.file_name),),
        )


def _notify(observer: Optional[PhaseObserver], session: WorkflowSession) -> None:
    if observer is not None:
        observer(session)


def _result(session: WorkflowSession, *texts: str) -> WorkflowResult:
    return WorkflowResult(session=session, replies=tuple(Reply(text=t) for t in texts))
