from abc import ABC, abstractmethod
from typing import List

from pydantic import BaseModel, Field

from context_engine.domain.models.messages import Message
from context_engine.domain.models.working_memory import WorkingMemoryState


class SessionSnapshot(BaseModel):
    """Stored history and working memory of one session"""
    messages: List[Message] = Field(default_factory=list)
    working_memory: WorkingMemoryState = Field(default_factory=WorkingMemoryState)


class SessionRepository(ABC):
    """Persistence collaborator, invoked only at call boundaries"""

    @abstractmethod
    async def load(self, session_id: str) -> SessionSnapshot:
        """Raises SessionNotFoundError for unknown sessions, PersistenceError on storage failure"""

    @abstractmethod
    async def save(self, session_id: str, messages: List[Message], working_memory: WorkingMemoryState) -> None:
        """Raises PersistenceError on storage failure"""
