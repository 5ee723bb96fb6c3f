"""
Session repository - handles interview session persistence.
"""
import asyncpg
import logging
from datetime import datetime
from typing import Optional

from onboarding.exceptions import SessionNotFoundError, TerminalStateError
from onboarding.models import (
    ActionResult,
    FunctionCall,
    InterviewSession,
    SessionStatus,
    TranscriptMessage,
)
from onboarding.models.session import utc_now

logger = logging.getLogger(__name__)

_SESSION_COLUMNS = """
    id, user_id, site_id, status, current_step, responses, external_data,
    action_fingerprints, catalog_version, summary, created_at, updated_at, completed_at
"""


def _message_row(message: TranscriptMessage) -> tuple:
    return (
        message.role.value,
        message.content,
        message.function_call.model_dump(mode="json") if message.function_call else None,
        message.function_result.model_dump(mode="json") if message.function_result else None,
        message.question_key,
        message.created_at,
    )


def _message_from_row(row: asyncpg.Record) -> TranscriptMessage:
    return TranscriptMessage(
        role=row["role"],
        content=row["content"],
        function_call=FunctionCall.model_validate(row["function_call"]) if row["function_call"] else None,
        function_result=ActionResult.model_validate(row["function_result"]) if row["function_result"] else None,
        question_key=row["question_key"],
        created_at=row["created_at"],
    )


class SessionRepository:
    """Repository for interview sessions and their transcripts."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create_session(self, session: InterviewSession) -> InterviewSession:
        """Insert a new session row (and any seeded transcript)."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO onboarding.sessions
                    (id, user_id, site_id, status, current_step, responses, external_data,
                     action_fingerprints, catalog_version, summary, created_at, updated_at, completed_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
                    """,
                    session.id, session.user_id, session.site_id, session.status.value,
                    session.current_step, session.responses, session.external_data,
                    session.action_fingerprints, session.catalog_version, session.summary,
                    session.created_at, session.updated_at, session.completed_at,
                )
                await self._insert_messages(conn, session.id, session.transcript, start=0)
        return session

    async def load_session(self, session_id: str) -> Optional[InterviewSession]:
        """Load a session with its full transcript, or None."""
        row = await self.pool.fetchrow(
            f"SELECT {_SESSION_COLUMNS} FROM onboarding.sessions WHERE id = $1",
            session_id
        )
        if row is None:
            return None

        messages = await self.pool.fetch(
            """
            SELECT role, content, function_call, function_result, question_key, created_at
            FROM onboarding.session_messages
            WHERE session_id = $1
            ORDER BY seq ASC
            """,
            session_id
        )
        return InterviewSession(
            **dict(row),
            transcript=[_message_from_row(m) for m in messages],
        )

    async def save_session(self, session: InterviewSession) -> InterviewSession:
        """
        Persist a session snapshot atomically.

        Updates the session row and brings the stored transcript in line with
        the snapshot, in a single transaction. The row is only written while
        the stored status is not terminal.

        Raises:
            TerminalStateError: the stored session is COMPLETED or CANCELLED.
            SessionNotFoundError: no row exists for the session.
        """
        session.updated_at = utc_now()
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                result = await conn.execute(
                    """
                    UPDATE onboarding.sessions
                    SET status = $2, current_step = $3, responses = $4, external_data = $5,
                        action_fingerprints = $6, catalog_version = $7, summary = $8,
                        updated_at = $9, completed_at = $10
                    WHERE id = $1 AND status NOT IN ('COMPLETED', 'CANCELLED')
                    """,
                    session.id, session.status.value, session.current_step, session.responses,
                    session.external_data, session.action_fingerprints, session.catalog_version,
                    session.summary, session.updated_at, session.completed_at,
                )
                if result != "UPDATE 1":
                    stored_status = await conn.fetchval(
                        "SELECT status FROM onboarding.sessions WHERE id = $1",
                        session.id
                    )
                    if stored_status is None:
                        raise SessionNotFoundError(session.id)
                    logger.info(f"🛑 Session {session.id[:8]} is {stored_status}, snapshot not saved")
                    raise TerminalStateError(session.id, stored_status)

                stored = await conn.fetchval(
                    "SELECT COUNT(*) FROM onboarding.session_messages WHERE session_id = $1",
                    session.id
                )
                if stored > len(session.transcript):
                    await conn.execute(
                        "DELETE FROM onboarding.session_messages WHERE session_id = $1 AND seq >= $2",
                        session.id, len(session.transcript)
                    )
                    stored = len(session.transcript)
                await self._insert_messages(conn, session.id, session.transcript[stored:], start=stored)
        return session

    async def append_transcript(self, session_id: str, message: TranscriptMessage):
        """Append a single transcript entry."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                stored = await conn.fetchval(
                    "SELECT COUNT(*) FROM onboarding.session_messages WHERE session_id = $1",
                    session_id
                )
                await self._insert_messages(conn, session_id, [message], start=stored)

    async def find_active_session(self, user_id: str) -> Optional[InterviewSession]:
        """Most recent NOT_STARTED or IN_PROGRESS session for a user."""
        session_id = await self.pool.fetchval(
            """
            SELECT id FROM onboarding.sessions
            WHERE user_id = $1 AND status IN ('NOT_STARTED', 'IN_PROGRESS')
            ORDER BY updated_at DESC
            LIMIT 1
            """,
            user_id
        )
        return await self.load_session(session_id) if session_id else None

    async def get_status(self, session_id: str) -> Optional[SessionStatus]:
        status = await self.pool.fetchval(
            "SELECT status FROM onboarding.sessions WHERE id = $1",
            session_id
        )
        return SessionStatus(status) if status else None

    async def update_status(self, session_id: str, status: SessionStatus, at: Optional[datetime] = None) -> bool:
        """
        Status-only write, independent of any in-flight snapshot save.

        Only applies while the stored status is NOT_STARTED or IN_PROGRESS;
        returns False when the session is already terminal or missing.
        """
        result = await self.pool.execute(
            """
            UPDATE onboarding.sessions SET status = $2, updated_at = $3
            WHERE id = $1 AND status IN ('NOT_STARTED', 'IN_PROGRESS')
            """,
            session_id, status.value, at or utc_now()
        )
        return result == "UPDATE 1"

    async def _insert_messages(self, conn, session_id: str, messages: list[TranscriptMessage], start: int):
        if not messages:
            return
        await conn.executemany(
            """
            INSERT INTO onboarding.session_messages
            (session_id, seq, role, content, function_call, function_result, question_key, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            [(session_id, start + i, *_message_row(m)) for i, m in enumerate(messages)]
        )


class InMemorySessionRepository:
    """
    Sessions kept as serialized JSON snapshots.

    Every load parses a fresh object, so callers always work on their own
    copy and a save replaces the stored snapshot in one assignment.
    """

    def __init__(self):
        self._snapshots: dict[str, str] = {}

    async def create_session(self, session: InterviewSession) -> InterviewSession:
        self._snapshots[session.id] = session.model_dump_json()
        return session

    async def load_session(self, session_id: str) -> Optional[InterviewSession]:
        raw = self._snapshots.get(session_id)
        return InterviewSession.model_validate_json(raw) if raw is not None else None

    async def save_session(self, session: InterviewSession) -> InterviewSession:
        stored = await self.load_session(session.id)
        if stored is None:
            raise SessionNotFoundError(session.id)
        if stored.is_terminal:
            raise TerminalStateError(session.id, stored.status.value)
        session.updated_at = utc_now()
        self._snapshots[session.id] = session.model_dump_json()
        return session

    async def append_transcript(self, session_id: str, message: TranscriptMessage):
        session = await self.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        session.transcript.append(message)
        self._snapshots[session_id] = session.model_dump_json()

    async def find_active_session(self, user_id: str) -> Optional[InterviewSession]:
        candidates = [
            s for s in (InterviewSession.model_validate_json(raw) for raw in self._snapshots.values())
            if s.user_id == user_id and not s.is_terminal
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda s: s.updated_at)

    async def get_status(self, session_id: str) -> Optional[SessionStatus]:
        session = await self.load_session(session_id)
        return session.status if session else None

    async def update_status(self, session_id: str, status: SessionStatus, at: Optional[datetime] = None) -> bool:
        session = await self.load_session(session_id)
        if session is None or session.is_terminal:
            return False
        session.status = status
        session.updated_at = at or utc_now()
        self._snapshots[session_id] = session.model_dump_json()
        return True
