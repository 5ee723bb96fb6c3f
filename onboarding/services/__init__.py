"""
Service layer for the interview engine.
"""
from .action_registry import Action, ActionRegistry, create_default_registry, resolve_templates
from .action_runner import ActionRunner, RunOutcome
from .condition_evaluator import evaluate
from .interview_engine import InterviewEngine
from .session_locks import SessionLockManager
from .validator import validate

__all__ = [
    "Action",
    "ActionRegistry",
    "create_default_registry",
    "resolve_templates",
    "ActionRunner",
    "RunOutcome",
    "evaluate",
    "InterviewEngine",
    "SessionLockManager",
    "validate",
]
