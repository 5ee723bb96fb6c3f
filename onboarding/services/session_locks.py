"""
Per-session mutation locks.

One asyncio.Lock per session id. Mutations never queue: a caller that finds
the lock held is rejected with ConcurrencyBusyError and retries later.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from onboarding.exceptions import ConcurrencyBusyError

logger = logging.getLogger(__name__)


class SessionLockManager:
    """Process-local lock table keyed by session id."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def is_locked(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        """
        Hold the session's lock for the duration of the block.

        Raises:
            ConcurrencyBusyError: another mutation already holds it.
        """
        lock = self._lock_for(session_id)
        # Acquiring a free lock does not suspend, so nothing can slip in after the check
        if lock.locked():
            logger.info(f"🔒 Session {session_id[:8]} busy, rejecting concurrent mutation")
            raise ConcurrencyBusyError(session_id)
        await lock.acquire()
        try:
            yield
        finally:
            lock.release()
            if not lock.locked() and self._locks.get(session_id) is lock:
                del self._locks[session_id]
