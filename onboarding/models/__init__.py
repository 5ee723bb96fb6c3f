"""
Onboarding engine models.

This module re-exports all model classes for convenient importing.
"""

# Enums
from .enums import SessionStatus, QuestionType, MessageRole, ActionTrigger

# Catalog models
from .question import (
    CatalogModel,
    GreetingConfig,
    InputConfig,
    ConfirmationConfig,
    SelectionConfig,
    MultiSelectionConfig,
    DynamicConfig,
    FileUploadConfig,
    SliderConfig,
    AISuggestionConfig,
    EditableDataConfig,
    INPUT_CONFIG_MODELS,
    ValidationRules,
    AutoAction,
    QuestionDefinition,
)

# Action models
from .action import ActionResult, ActionContext, FunctionCall, ModelReply

# Session models
from .session import InterviewSession, TranscriptMessage

# Engine and API models
from .interview import (
    ValidationResult,
    Progress,
    SubmitResult,
    ChatReply,
    CreateSessionRequest,
    ResetSessionRequest,
    SubmitResponseRequest,
    GoBackRequest,
    ExecuteActionRequest,
    ChatMessageRequest,
    SessionStateResponse,
    ActionResponse,
    TranscriptResponse,
)

__all__ = [
    "SessionStatus",
    "QuestionType",
    "MessageRole",
    "ActionTrigger",
    "CatalogModel",
    "GreetingConfig",
    "InputConfig",
    "ConfirmationConfig",
    "SelectionConfig",
    "MultiSelectionConfig",
    "DynamicConfig",
    "FileUploadConfig",
    "SliderConfig",
    "AISuggestionConfig",
    "EditableDataConfig",
    "INPUT_CONFIG_MODELS",
    "ValidationRules",
    "AutoAction",
    "QuestionDefinition",
    "ActionResult",
    "ActionContext",
    "FunctionCall",
    "ModelReply",
    "InterviewSession",
    "TranscriptMessage",
    "ValidationResult",
    "Progress",
    "SubmitResult",
    "ChatReply",
    "CreateSessionRequest",
    "ResetSessionRequest",
    "SubmitResponseRequest",
    "GoBackRequest",
    "ExecuteActionRequest",
    "ChatMessageRequest",
    "SessionStateResponse",
    "ActionResponse",
    "TranscriptResponse",
]
