"""
Repository layer for data access.
"""
from .question_repo import QuestionRepository, InMemoryQuestionRepository
from .session_repo import SessionRepository, InMemorySessionRepository

__all__ = [
    "QuestionRepository",
    "InMemoryQuestionRepository",
    "SessionRepository",
    "InMemorySessionRepository",
]
