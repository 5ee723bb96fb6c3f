"""
Enums for the onboarding interview engine.
"""
from enum import Enum


class SessionStatus(str, Enum):
    """Interview session lifecycle status."""
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class QuestionType(str, Enum):
    """Closed set of question types a catalog entry can declare."""
    GREETING = "GREETING"
    INPUT = "INPUT"
    CONFIRMATION = "CONFIRMATION"
    SELECTION = "SELECTION"
    MULTI_SELECTION = "MULTI_SELECTION"
    DYNAMIC = "DYNAMIC"
    FILE_UPLOAD = "FILE_UPLOAD"
    SLIDER = "SLIDER"
    AI_SUGGESTION = "AI_SUGGESTION"
    EDITABLE_DATA = "EDITABLE_DATA"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    FUNCTION = "function"
    SYSTEM = "system"


class ActionTrigger(str, Enum):
    """Who asked for an action to run."""
    AUTO = "auto"
    CLIENT = "client"
    ASSISTANT = "assistant"
