from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict
import asyncio


class StateManager:
    """Hands out one lock per session so writes to a session's history are serialised"""

    def __init__(self):
        self.locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def get_lock(self, session_id: str) -> asyncio.Lock:
        """Lock guarding the session's history; pair with release_session"""

        async with self._lock:
            lock = self.locks.get(session_id)
            if lock is None:
                lock = asyncio.Lock()
                self.locks[session_id] = lock
            self._holders[session_id] = self._holders.get(session_id, 0) + 1
            return lock

    async def release_session(self, session_id: str):
        """Drop the session's lock once no caller holds or waits on it"""

        async with self._lock:
            remaining = self._holders.get(session_id, 0) - 1
            if remaining > 0:
                self._holders[session_id] = remaining
            else:
                self._holders.pop(session_id, None)
                self.locks.pop(session_id, None)

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock for the duration of the block"""

        lock = await self.get_lock(session_id)
        try:
            async with lock:
                yield
        finally:
            await self.release_session(session_id)
