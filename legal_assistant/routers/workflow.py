"""
Server-driven conversation workflow.

POST   /sessions                 - start a conversation (greeting reply)
GET    /sessions/{id}            - current phase, question and answers
POST   /sessions/{id}/messages   - chat message, consent or answer
POST   /sessions/{id}/upload     - upload a document for analysis
POST   /sessions/{id}/reset      - start over with a new document
GET    /sessions/{id}/document   - download the completed document
DELETE /sessions/{id}            - end the conversation
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from fastapi.responses import PlainTextResponse

from legal_assistant.config import settings
from legal_assistant.dependencies.services import get_session_manager
from legal_assistant.models.schemas import BotReply, WorkflowMessageRequest, WorkflowSessionResponse
from legal_assistant.services.session_manager import SessionEntry, SessionManager
from legal_assistant.services.workflow import (
    DocumentUploaded,
    NewDocumentRequested,
    Reply,
    UploadedDocument,
    UserMessage,
)
from legal_assistant.utils.helpers import content_disposition, safe_remove, save_upload, validate_upload

logger = logging.getLogger(__name__)

router = APIRouter()


def _download_path(session_id: str) -> str:
    return f"/api/workflow/sessions/{session_id}/document"


def _to_response(entry: SessionEntry, replies: Iterable[Reply] = ()) -> WorkflowSessionResponse:
    session = entry.snapshot
    analysis = session.analysis
    return WorkflowSessionResponse(
        session_id=entry.session_id,
        phase=session.phase.value,
        question_index=session.question_index,
        question_count=len(session.questions),
        current_question=session.current_question,
        analysis=analysis.text if analysis else None,
        document_type=analysis.document_type if analysis else None,
        answers=dict(session.answers),
        has_document=session.artifact is not None,
        busy=entry.busy,
        replies=[
            BotReply(
                text=reply.text,
                file_name=reply.file_name,
                download_url=_download_path(entry.session_id) if reply.file_name else None,
            )
            for reply in replies
        ],
    )


@router.post(
    "/sessions",
    response_model=WorkflowSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(manager: SessionManager = Depends(get_session_manager)):
    entry, result = await manager.create()
    return _to_response(entry, result.replies)


@router.get("/sessions/{session_id}", response_model=WorkflowSessionResponse)
async def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    return _to_response(manager.get(session_id))


@router.post("/sessions/{session_id}/messages", response_model=WorkflowSessionResponse)
async def post_message(
    session_id: str,
    body: WorkflowMessageRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    result = await manager.handle(session_id, UserMessage(body.message))
    return _to_response(manager.get(session_id), result.replies)


@router.post("/sessions/{session_id}/upload", response_model=WorkflowSessionResponse)
async def upload_to_session(
    session_id: str,
    document: Optional[UploadFile] = File(None),
    file: Optional[UploadFile] = File(None),
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Upload a document into the conversation.

    Unsupported or unreadable files are answered with a bot reply rather than
    an HTTP error, so the conversation can continue.
    """
    manager.get(session_id)
    upload = document or file
    file_ext = validate_upload(upload)

    file_path, file_size = await save_upload(upload, settings.UPLOAD_DIR, settings.MAX_FILE_SIZE)
    logger.info("Session %s: saved %r (%d bytes)", session_id, upload.filename, file_size)
    try:
        result = await manager.handle(
            session_id,
            DocumentUploaded(UploadedDocument(file_path, file_ext, upload.filename)),
        )
    finally:
        safe_remove(file_path)
    return _to_response(manager.get(session_id), result.replies)


@router.post("/sessions/{session_id}/reset", response_model=WorkflowSessionResponse)
async def reset_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    result = await manager.handle(session_id, NewDocumentRequested())
    return _to_response(manager.get(session_id), result.replies)


@router.get("/sessions/{session_id}/document", response_class=PlainTextResponse)
async def download_document(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    artifact = manager.get(session_id).session.artifact
    if artifact is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No completed document for this session yet.",
        )
    return PlainTextResponse(
        artifact.content,
        headers={"Content-Disposition": content_disposition(artifact.file_name)},
    )


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, manager: SessionManager = Depends(get_session_manager)):
    manager.delete(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
