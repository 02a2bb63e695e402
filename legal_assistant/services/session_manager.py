"""
In-memory registry of workflow sessions, one per conversation.

Usage
-----
    manager = SessionManager(engine)
    session_id, result = await manager.create()
    result = await manager.handle(session_id, UserMessage("yes please"))

Events for one session run strictly one after another: each entry owns an
``asyncio.Lock`` (waiters are woken in FIFO order) held around the engine
call.  Different sessions never share state.

Sessions idle for longer than ``ttl`` seconds are dropped the next time the
registry is touched; a session with an event in flight is never dropped.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
import uuid
from typing import Dict, Optional, Tuple

from legal_assistant.config import settings
from legal_assistant.exceptions import SessionNotFoundError
from legal_assistant.services.workflow import (
    ConversationStarted,
    WorkflowEngine,
    WorkflowEvent,
    WorkflowResult,
    WorkflowSession,
)

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class SessionEntry:
    session_id: str
    session: WorkflowSession = dataclasses.field(default_factory=WorkflowSession)
    lock: asyncio.Lock = dataclasses.field(default_factory=asyncio.Lock)
    # Set while an event is being processed (ANALYZING, GENERATING_DOCUMENT …)
    transient: Optional[WorkflowSession] = None
    created_at: float = dataclasses.field(default_factory=time.monotonic)
    updated_at: float = dataclasses.field(default_factory=time.monotonic)

    @property
    def busy(self) -> bool:
        return self.lock.locked()

    @property
    def snapshot(self) -> WorkflowSession:
        """What a poller should see: the in-flight phase if any, else the stored session."""
        return self.transient or self.session


class SessionManager:
    """Owns the sessions and serialises the events of each one."""

    def __init__(self, engine: WorkflowEngine, ttl: Optional[float] = None) -> None:
        self.engine = engine
        self.ttl = settings.SESSION_TTL if ttl is None else ttl
        self._entries: Dict[str, SessionEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: SessionEntry, now: float) -> bool:
        return self.ttl > 0 and not entry.busy and now - entry.updated_at > self.ttl

    def prune(self) -> int:
        """Drop idle sessions past the TTL. Returns how many were removed."""
        now = time.monotonic()
        expired = [sid for sid, entry in self._entries.items() if self._expired(entry, now)]
        for session_id in expired:
            del self._entries[session_id]
            logger.info("Workflow session %s expired", session_id)
        return len(expired)

    def get(self, session_id: str) -> SessionEntry:
        self.prune()
        entry = self._entries.get(session_id)
        if entry is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return entry

    async def create(self) -> Tuple[SessionEntry, WorkflowResult]:
        """Register a new session and start its conversation."""
        self.prune()
        entry = SessionEntry(session_id=uuid.uuid4().hex)
        self._entries[entry.session_id] = entry
        result = await self.handle(entry.session_id, ConversationStarted())
        logger.info("Workflow session %s created", entry.session_id)
        return entry, result

    async def handle(self, session_id: str, event: WorkflowEvent) -> WorkflowResult:
        entry = self.get(session_id)

        def _observe(session: WorkflowSession) -> None:
            entry.transient = session
            logger.debug("Session %s entered %s", session_id, session.phase.value)

        async with entry.lock:
            if self._entries.get(session_id) is not entry:
                raise SessionNotFoundError(f"Session {session_id} not found")
            try:
                result = await self.engine.handle(entry.session, event, observer=_observe)
            finally:
                entry.transient = None
            entry.session = result.session
            entry.updated_at = time.monotonic()

        logger.info(
            "Session %s handled %s -> %s",
            session_id, type(event).__name__, result.session.phase.value,
        )
        return result

    def delete(self, session_id: str) -> None:
        if self._entries.pop(session_id, None) is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        logger.info("Workflow session %s deleted", session_id)
