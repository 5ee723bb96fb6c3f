"""
FastAPI dependency injection factories.

The interview engine is built once during app startup (it owns the
per-session locks, so every request must share the same instance) and
handed to routers through these factories.
"""
import asyncpg
from typing import Optional

from onboarding.config import DATABASE_URL
from onboarding.database import get_db_pool
from onboarding.services import InterviewEngine


# Global engine instance (set during app startup)
_engine: Optional[InterviewEngine] = None


def set_interview_engine(engine: Optional[InterviewEngine]):
    """Set the global interview engine instance."""
    global _engine
    _engine = engine


def get_interview_engine() -> InterviewEngine:
    """Get the global interview engine instance."""
    if _engine is None:
        raise RuntimeError("InterviewEngine not initialized. Call set_interview_engine() during app startup.")
    return _engine


# =============================================================================
# Database Dependencies
# =============================================================================

async def get_optional_pool() -> Optional[asyncpg.Pool]:
    """Get the database connection pool, or None when running in memory."""
    if not DATABASE_URL:
        return None
    return await get_db_pool()
