"""
Onboarding interview endpoints.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, status

from onboarding.dependencies import get_interview_engine
from onboarding.exceptions import ResponseValidationError
from onboarding.models import (
    ActionResponse,
    ChatMessageRequest,
    ChatReply,
    CreateSessionRequest,
    ExecuteActionRequest,
    GoBackRequest,
    Progress,
    QuestionDefinition,
    ResetSessionRequest,
    SessionStateResponse,
    SubmitResponseRequest,
    SubmitResult,
    TranscriptResponse,
)
from onboarding.services import InterviewEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])


async def _session_state(
    engine: InterviewEngine,
    session_id: str,
    current_question: Optional[QuestionDefinition] = None,
) -> SessionStateResponse:
    session = await engine.get_session(session_id)
    progress = await engine.get_progress(session_id)
    return SessionStateResponse(
        id=session.id,
        user_id=session.user_id,
        site_id=session.site_id,
        status=session.status,
        current_step=session.current_step,
        responses=session.responses,
        external_data=session.external_data,
        summary=session.summary,
        current_question=current_question,
        progress=progress,
    )


@router.get("/questions", response_model=list[QuestionDefinition])
async def list_questions(engine: InterviewEngine = Depends(get_interview_engine)):
    """Active question catalog in presentation order."""
    return await engine.get_catalog()


@router.post("/sessions", response_model=SessionStateResponse, status_code=status.HTTP_201_CREATED)
async def create_or_resume_session(
    request: CreateSessionRequest,
    engine: InterviewEngine = Depends(get_interview_engine),
):
    """Create a session for the user, or resume their active one, and position it."""
    session = await engine.create_session(
        request.user_id,
        site_id=request.site_id,
        initial_responses=request.initial_responses,
    )
    question = await engine.get_current_question(session.id)
    return await _session_state(engine, session.id, question)


@router.patch("/sessions", response_model=SessionStateResponse)
async def reset_session(
    request: ResetSessionRequest,
    engine: InterviewEngine = Depends(get_interview_engine),
):
    """Clear the user's active session and start over (creates one if none exists)."""
    session = await engine.reset_interview(request.user_id, site_id=request.site_id)
    question = await engine.get_current_question(session.id)
    return await _session_state(engine, session.id, question)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
async def get_session_state(session_id: str, engine: InterviewEngine = Depends(get_interview_engine)):
    """Session state with the question to answer now."""
    question = await engine.get_current_question(session_id)
    return await _session_state(engine, session_id, question)


@router.post("/sessions/{session_id}/start", response_model=SessionStateResponse)
async def start_session(session_id: str, engine: InterviewEngine = Depends(get_interview_engine)):
    await engine.start(session_id)
    question = await engine.get_current_question(session_id)
    return await _session_state(engine, session_id, question)


@router.post("/sessions/{session_id}/responses", response_model=SubmitResult)
async def submit_response(
    session_id: str,
    request: SubmitResponseRequest,
    engine: InterviewEngine = Depends(get_interview_engine),
):
    """
    Answer the current question.

    Validation failures come back as 400. An auto-action failure on the
    next question is a 200 with `action_error` set: the answer was kept
    and resubmitting retries the action.
    """
    result = await engine.submit_response(session_id, request.question_key, request.value)
    if not result.accepted:
        raise ResponseValidationError(result.errors, request.question_key)
    return result


@router.post("/sessions/{session_id}/back", response_model=SessionStateResponse)
async def go_back(
    session_id: str,
    request: GoBackRequest,
    engine: InterviewEngine = Depends(get_interview_engine),
):
    question = await engine.go_back(session_id, request.question_key)
    return await _session_state(engine, session_id, question)


@router.post("/sessions/{session_id}/actions", response_model=ActionResponse)
async def execute_action(
    session_id: str,
    request: ExecuteActionRequest,
    engine: InterviewEngine = Depends(get_interview_engine),
):
    """Run one of the current question's allowed actions."""
    result = await engine.execute_action(
        session_id,
        request.action_name,
        request.parameters,
        question_key=request.question_key,
    )
    return ActionResponse(action_name=request.action_name, result=result)


@router.post("/sessions/{session_id}/chat", response_model=ChatReply)
async def chat(
    session_id: str,
    request: ChatMessageRequest,
    engine: InterviewEngine = Depends(get_interview_engine),
):
    return await engine.send_chat_message(session_id, request.message)


@router.post("/sessions/{session_id}/complete", response_model=SessionStateResponse)
async def complete_session(session_id: str, engine: InterviewEngine = Depends(get_interview_engine)):
    await engine.complete_interview(session_id)
    return await _session_state(engine, session_id)


@router.delete("/sessions/{session_id}", response_model=SessionStateResponse)
async def cancel_session(session_id: str, engine: InterviewEngine = Depends(get_interview_engine)):
    await engine.cancel_interview(session_id)
    return await _session_state(engine, session_id)


@router.get("/sessions/{session_id}/progress", response_model=Progress)
async def get_progress(session_id: str, engine: InterviewEngine = Depends(get_interview_engine)):
    return await engine.get_progress(session_id)


@router.get("/sessions/{session_id}/transcript", response_model=TranscriptResponse)
async def get_transcript(session_id: str, engine: InterviewEngine = Depends(get_interview_engine)):
    session = await engine.get_session(session_id)
    return TranscriptResponse(session_id=session.id, messages=session.transcript)
