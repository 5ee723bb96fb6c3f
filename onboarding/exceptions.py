"""
Custom exception classes and error handling.

This module provides the engine's error taxonomy and the FastAPI handlers
that render it consistently across the application.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from onboarding.config import BUSY_RETRY_AFTER_SECONDS

logger = logging.getLogger(__name__)


class OnboardingException(Exception):
    """Base exception for all onboarding engine errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(OnboardingException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, resource_id: str, details: Optional[Dict[str, Any]] = None):
        message = f"{resource} not found: {resource_id}"
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)
        self.resource = resource
        self.resource_id = resource_id


class SessionNotFoundError(NotFoundError):
    """Raised when an interview session does not exist."""

    def __init__(self, session_id: str):
        super().__init__("Interview session", session_id)
        self.session_id = session_id


class ResponseValidationError(OnboardingException):
    """
    A submitted response failed validation.

    User-correctable: the engine returns these errors inline and never logs
    them as a system fault.
    """

    def __init__(self, errors: List[str], question_key: Optional[str] = None):
        message = errors[0] if errors else "Invalid response"
        super().__init__(
            message,
            status.HTTP_400_BAD_REQUEST,
            {"errors": errors, "question_key": question_key},
        )
        self.errors = errors
        self.question_key = question_key


class ActionFailure(OnboardingException):
    """An action failed because of an external or unexpected fault."""

    def __init__(self, action_name: str, error: str):
        super().__init__(
            error,
            status.HTTP_502_BAD_GATEWAY,
            {"action": action_name},
        )
        self.action_name = action_name
        self.error = error


class ActionNotAllowedError(OnboardingException):
    """The action is not in the current question's allowed actions."""

    def __init__(self, action_name: str, question_key: Optional[str] = None):
        super().__init__(
            f"Action '{action_name}' is not allowed for this question",
            status.HTTP_403_FORBIDDEN,
            {"action": action_name, "question_key": question_key},
        )
        self.action_name = action_name


class TerminalStateError(OnboardingException):
    """A mutation was attempted on a COMPLETED or CANCELLED session."""

    def __init__(self, session_id: str, session_status: str):
        super().__init__(
            f"Interview session is {session_status.lower()} and can no longer be changed",
            status.HTTP_409_CONFLICT,
            {"session_id": session_id, "status": session_status},
        )
        self.session_status = session_status


class StepMismatchError(OnboardingException):
    """A response was submitted for a question that is not the current one."""

    def __init__(self, question_key: str, current_key: Optional[str]):
        super().__init__(
            f"Question '{question_key}' is not the current question",
            status.HTTP_409_CONFLICT,
            {"question_key": question_key, "current_question_key": current_key},
        )
        self.question_key = question_key
        self.current_key = current_key


class NotEligibleError(OnboardingException):
    """Completion was requested while eligible questions remain."""

    def __init__(self, remaining_key: str):
        super().__init__(
            "Interview is not yet eligible for completion",
            status.HTTP_409_CONFLICT,
            {"next_question_key": remaining_key},
        )
        self.remaining_key = remaining_key


class ConcurrencyBusyError(OnboardingException):
    """Another mutation is in flight for this session; retry shortly."""

    def __init__(self, session_id: str):
        super().__init__(
            "Session is busy, retry shortly",
            status.HTTP_423_LOCKED,
            {"session_id": session_id, "retry_after": BUSY_RETRY_AFTER_SECONDS},
        )
        self.session_id = session_id


class FunctionCallLoopExceeded(OnboardingException):
    """The assistant requested too many consecutive function calls."""

    def __init__(self, limit: int):
        super().__init__(
            "I couldn't finish that request. Could you please rephrase it?",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            {"max_function_calls": limit},
        )
        self.limit = limit


# =============================================================================
# Exception Handlers
# =============================================================================

async def onboarding_exception_handler(request: Request, exc: OnboardingException) -> JSONResponse:
    """Handle OnboardingException instances."""
    headers = None
    if isinstance(exc, ConcurrencyBusyError):
        headers = {"Retry-After": str(BUSY_RETRY_AFTER_SECONDS)}
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.details
        },
        headers=headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": {"message": str(exc)}
        }
    )


def register_exception_handlers(app):
    """
    Register all custom exception handlers with the FastAPI app.

    Call this during app initialization:
        from onboarding.exceptions import register_exception_handlers
        register_exception_handlers(app)
    """
    app.add_exception_handler(OnboardingException, onboarding_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
