"""
Health check router with database connectivity verification.
"""
import asyncpg
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from onboarding.dependencies import get_optional_pool

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(pool: Optional[asyncpg.Pool] = Depends(get_optional_pool)):
    """Health check endpoint with database connectivity verification.

    Returns 200 if the service (and database, when configured) is healthy.
    Returns 503 if the database is unreachable.
    """
    if pool is None:
        return {"status": "healthy", "service": "onboarding-engine", "database": "in-memory"}
    try:
        await pool.fetchval("SELECT 1")
        return {"status": "healthy", "service": "onboarding-engine", "database": "connected"}
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": "onboarding-engine", "database": str(e)}
        )
