"""
Interview session models.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from .action import ActionResult, FunctionCall
from .enums import MessageRole, SessionStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TranscriptMessage(BaseModel):
    """One append-only transcript entry."""
    role: MessageRole
    content: str = ""
    function_call: Optional[FunctionCall] = None
    function_result: Optional[ActionResult] = None
    question_key: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class InterviewSession(BaseModel):
    """A single user's run through the question catalog."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    site_id: Optional[str] = None
    status: SessionStatus = SessionStatus.NOT_STARTED
    current_step: int = 0  # order of the presented question, 0 = not positioned
    responses: dict[str, Any] = Field(default_factory=dict)
    external_data: dict[str, Any] = Field(default_factory=dict)
    action_fingerprints: dict[str, str] = Field(default_factory=dict)
    transcript: list[TranscriptMessage] = Field(default_factory=list)
    catalog_version: Optional[str] = None
    summary: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def add_message(self, role: MessageRole, content: str = "", **kwargs) -> TranscriptMessage:
        message = TranscriptMessage(role=role, content=content, **kwargs)
        self.transcript.append(message)
        return message
