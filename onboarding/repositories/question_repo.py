"""
Question repository - read access to the question catalog.
"""
import asyncpg
import logging
from typing import Iterable

from onboarding.models import QuestionDefinition

logger = logging.getLogger(__name__)


class QuestionRepository:
    """Repository for the onboarding question catalog."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def list_active_questions(self) -> list[QuestionDefinition]:
        """Active questions ordered by `order`."""
        rows = await self.pool.fetch(
            """
            SELECT id, "order", key, type, input_config, validation, depends_on,
                   show_condition, auto_actions, allowed_actions, save_to_field, is_active
            FROM onboarding.questions
            WHERE is_active = TRUE
            ORDER BY "order" ASC
            """
        )
        return [QuestionDefinition.model_validate(dict(row)) for row in rows]

    async def upsert_questions(self, questions: Iterable[QuestionDefinition]) -> int:
        """Seed or update catalog entries (used by fixtures and tests, not by the engine)."""
        count = 0
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                for q in questions:
                    await conn.execute(
                        """
                        INSERT INTO onboarding.questions
                        (id, "order", key, type, input_config, validation, depends_on,
                         show_condition, auto_actions, allowed_actions, save_to_field, is_active)
                        VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                        ON CONFLICT (id) DO UPDATE SET
                            "order" = EXCLUDED."order",
                            key = EXCLUDED.key,
                            type = EXCLUDED.type,
                            input_config = EXCLUDED.input_config,
                            validation = EXCLUDED.validation,
                            depends_on = EXCLUDED.depends_on,
                            show_condition = EXCLUDED.show_condition,
                            auto_actions = EXCLUDED.auto_actions,
                            allowed_actions = EXCLUDED.allowed_actions,
                            save_to_field = EXCLUDED.save_to_field,
                            is_active = EXCLUDED.is_active
                        """,
                        q.id or q.key,
                        q.order,
                        q.key,
                        q.type.value,
                        q.input_config.model_dump(mode="json", by_alias=True),
                        q.validation.model_dump(mode="json", by_alias=True, exclude_none=True),
                        q.depends_on,
                        q.show_condition,
                        [a.model_dump(mode="json", by_alias=True) for a in q.auto_actions],
                        q.allowed_actions,
                        q.save_to_field,
                        q.is_active,
                    )
                    count += 1
        logger.info(f"Upserted {count} catalog questions")
        return count


class InMemoryQuestionRepository:
    """Catalog held in process memory; used without DATABASE_URL and in tests."""

    def __init__(self, questions: Iterable[QuestionDefinition] = ()):
        self._questions: dict[str, QuestionDefinition] = {}
        for q in questions:
            self._questions[q.id or q.key] = q

    async def list_active_questions(self) -> list[QuestionDefinition]:
        active = [q for q in self._questions.values() if q.is_active]
        return sorted(active, key=lambda q: q.order)

    async def upsert_questions(self, questions: Iterable[QuestionDefinition]) -> int:
        count = 0
        for q in questions:
            self._questions[q.id or q.key] = q
            count += 1
        return count
