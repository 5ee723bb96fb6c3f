"""
Database connection management and migrations.
"""
import asyncpg
import json
import logging
from typing import Optional
from onboarding.config import DATABASE_URL

logger = logging.getLogger(__name__)

# Global connection pool
_db_pool: Optional[asyncpg.Pool] = None


async def _init_connection(conn: asyncpg.Connection):
    """Decode json/jsonb columns to Python objects on every connection."""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


async def get_db_pool() -> asyncpg.Pool:
    """Get or create the database connection pool."""
    global _db_pool
    if _db_pool is None:
        if not DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not configured")

        # Accept SQLAlchemy-style URLs as well
        raw_url = DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://")

        async def setup_connection(conn):
            """Validate connection on acquire."""
            await conn.execute("SELECT 1")

        _db_pool = await asyncpg.create_pool(
            raw_url,
            min_size=2,
            max_size=10,
            command_timeout=60,
            max_inactive_connection_lifetime=300.0,
            init=_init_connection,
            setup=setup_connection,
        )
        logger.info("Database connection pool created (min=2, max=10, idle_lifetime=300s)")
    return _db_pool


async def close_db_pool():
    """Close the database connection pool."""
    global _db_pool
    if _db_pool is not None:
        await _db_pool.close()
        _db_pool = None
        logger.info("Database connection pool closed")


async def run_schema_migrations(pool: asyncpg.Pool):
    """Create the onboarding schema and tables if they don't exist."""
    try:
        await pool.execute("CREATE SCHEMA IF NOT EXISTS onboarding;")

        await pool.execute("""
            CREATE TABLE IF NOT EXISTS onboarding.questions (
                id TEXT PRIMARY KEY,
                "order" INTEGER NOT NULL,
                key TEXT NOT NULL,
                type TEXT NOT NULL,
                input_config JSONB NOT NULL DEFAULT '{}'::jsonb,
                validation JSONB NOT NULL DEFAULT '{}'::jsonb,
                depends_on TEXT,
                show_condition JSONB,
                auto_actions JSONB NOT NULL DEFAULT '[]'::jsonb,
                allowed_actions JSONB NOT NULL DEFAULT '[]'::jsonb,
                save_to_field TEXT,
                is_active BOOLEAN NOT NULL DEFAULT TRUE
            );
        """)
        await pool.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS questions_active_order_idx
            ON onboarding.questions ("order") WHERE is_active;
        """)

        await pool.execute("""
            CREATE TABLE IF NOT EXISTS onboarding.sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                site_id TEXT,
                status TEXT NOT NULL DEFAULT 'NOT_STARTED',
                current_step INTEGER NOT NULL DEFAULT 0,
                responses JSONB NOT NULL DEFAULT '{}'::jsonb,
                external_data JSONB NOT NULL DEFAULT '{}'::jsonb,
                action_fingerprints JSONB NOT NULL DEFAULT '{}'::jsonb,
                catalog_version TEXT,
                summary TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                completed_at TIMESTAMPTZ
            );
        """)
        await pool.execute("""
            CREATE INDEX IF NOT EXISTS sessions_user_status_idx
            ON onboarding.sessions (user_id, status);
        """)

        await pool.execute("""
            CREATE TABLE IF NOT EXISTS onboarding.session_messages (
                session_id TEXT NOT NULL REFERENCES onboarding.sessions(id) ON DELETE CASCADE,
                seq INTEGER NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL DEFAULT '',
                function_call JSONB,
                function_result JSONB,
                question_key TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                PRIMARY KEY (session_id, seq)
            );
        """)

        logger.info("Onboarding schema (questions, sessions, session_messages) ensured")
    except Exception as e:
        logger.error(f"Schema migration error: {e}")
        raise
