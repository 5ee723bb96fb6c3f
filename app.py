"""
Onboarding interview engine API.

Run locally:
    uvicorn app:app --reload

Without DATABASE_URL the app runs on in-memory repositories seeded from
the bundled question catalog.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from onboarding.config import DATABASE_URL, ENVIRONMENT, LLM_ENABLED
from onboarding.database import close_db_pool, get_db_pool, run_schema_migrations
from onboarding.dependencies import set_interview_engine
from onboarding.exceptions import register_exception_handlers
from onboarding.fixtures import load_catalog
from onboarding.repositories import (
    InMemoryQuestionRepository,
    InMemorySessionRepository,
    QuestionRepository,
    SessionRepository,
)
from onboarding.routers import health_router, onboarding_router
from onboarding.services import InterviewEngine, create_default_registry
from onboarding_agent import AssistantBridge, GeminiLanguageModel, StrategySummaryGenerator

logger = logging.getLogger(__name__)


def build_engine(question_repo, session_repo, llm=None, http_client=None) -> InterviewEngine:
    """Wire the registry, assistant and summary hook around the repositories."""
    registry = create_default_registry(http_client=http_client, llm=llm)
    return InterviewEngine(
        question_repo,
        session_repo,
        registry,
        assistant=AssistantBridge(llm, registry) if llm else None,
        summary_generator=StrategySummaryGenerator(llm) if llm else None,
    )


async def _create_repositories():
    if not DATABASE_URL:
        logger.warning("DATABASE_URL not set, using in-memory repositories")
        return InMemoryQuestionRepository(load_catalog()), InMemorySessionRepository()

    pool = await get_db_pool()
    await run_schema_migrations(pool)
    question_repo = QuestionRepository(pool)
    if not await question_repo.list_active_questions():
        count = await question_repo.upsert_questions(load_catalog())
        logger.info(f"🌱 Seeded empty catalog with {count} questions")
    return question_repo, SessionRepository(pool)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - build the interview engine on startup."""
    llm: Optional[GeminiLanguageModel] = GeminiLanguageModel() if LLM_ENABLED else None
    if llm is None:
        logger.warning("No Gemini credentials found, assistant and AI actions are disabled")

    question_repo, session_repo = await _create_repositories()
    set_interview_engine(build_engine(question_repo, session_repo, llm=llm))
    logger.info(f"🚀 Onboarding engine ready ({ENVIRONMENT})")
    yield
    # Cleanup on shutdown
    set_interview_engine(None)
    await close_db_pool()


app = FastAPI(title="Onboarding Interview Engine", lifespan=lifespan)

# CORS middleware for the onboarding frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=True,
)

register_exception_handlers(app)

app.include_router(health_router)
app.include_router(onboarding_router)
