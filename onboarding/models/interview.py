"""
Interview engine request and result models.
"""
from typing import Any, Optional

from pydantic import BaseModel, Field

from .action import ActionResult
from .enums import SessionStatus
from .question import QuestionDefinition
from .session import TranscriptMessage


class ValidationResult(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


class Progress(BaseModel):
    current_step: int
    total_steps: int
    percentage: int


class SubmitResult(BaseModel):
    """
    Outcome of submit_response.

    accepted=False means validation failed and nothing changed.
    accepted=True with action_error set means the response was stored but
    the next question's auto-actions failed, so the cursor did not move.
    """
    accepted: bool
    errors: list[str] = Field(default_factory=list)
    action_error: Optional[str] = None
    failed_action: Optional[str] = None
    next_question: Optional[QuestionDefinition] = None
    is_complete: bool = False
    progress: Optional[Progress] = None


class ChatReply(BaseModel):
    reply: str
    function_calls: int = 0


# =============================================================================
# HTTP request bodies
# =============================================================================

class CreateSessionRequest(BaseModel):
    user_id: str
    site_id: Optional[str] = None
    initial_responses: Optional[dict[str, Any]] = None


class ResetSessionRequest(BaseModel):
    user_id: str
    site_id: Optional[str] = None


class SubmitResponseRequest(BaseModel):
    question_key: str
    value: Any = None


class GoBackRequest(BaseModel):
    question_key: str


class ExecuteActionRequest(BaseModel):
    action_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    question_key: Optional[str] = None


class ChatMessageRequest(BaseModel):
    message: str


# =============================================================================
# HTTP responses
# =============================================================================

class SessionStateResponse(BaseModel):
    id: str
    user_id: str
    site_id: Optional[str] = None
    status: SessionStatus
    current_step: int
    responses: dict[str, Any]
    external_data: dict[str, Any]
    summary: Optional[str] = None
    current_question: Optional[QuestionDefinition] = None
    progress: Progress


class ActionResponse(BaseModel):
    action_name: str
    result: ActionResult


class TranscriptResponse(BaseModel):
    session_id: str
    messages: list[TranscriptMessage]
