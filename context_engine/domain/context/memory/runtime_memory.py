from typing import Dict, List
import asyncio

from context_engine.domain.exceptions import SessionNotFoundError
from context_engine.domain.models.messages import Message
from context_engine.domain.models.working_memory import WorkingMemoryState
from .session_repository import SessionRepository, SessionSnapshot


class InMemorySessionRepository(SessionRepository):
    """Process-local session store for active sessions"""

    def __init__(self):
        self.sessions: Dict[str, SessionSnapshot] = {}
        self._lock = asyncio.Lock()

    async def load(self, session_id: str) -> SessionSnapshot:
        """Deep copy of the stored session"""

        async with self._lock:
            snapshot = self.sessions.get(session_id)
            if snapshot is None:
                raise SessionNotFoundError(session_id)
            return snapshot.model_copy(deep=True)

    async def save(self, session_id: str, messages: List[Message], working_memory: WorkingMemoryState) -> None:
        """Replace the stored session"""

        snapshot = SessionSnapshot(messages=list(messages), working_memory=working_memory)
        async with self._lock:
            self.sessions[session_id] = snapshot.model_copy(deep=True)
