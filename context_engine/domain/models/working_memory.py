from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum

from pydantic import Field

from .base import WireModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ToolOutcome(str, Enum):
    """Result of the last tool invocation"""
    SUCCESS = "success"
    ERROR = "error"


class Entity(WireModel):
    """A resource referenced by the conversation (page, section, post...)"""
    type: str = Field(description="Entity type tag")
    id: str = Field(description="Unique entity identifier")
    name: str = Field(description="Display name")
    slug: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now, description="Last touched")


class ToolUsageRecord(WireModel):
    """Invocation statistics for a tool the agent actually called"""
    name: str
    count: int = 0
    last_used: datetime = Field(default_factory=utc_now)
    last_result: ToolOutcome = ToolOutcome.SUCCESS


class WorkingMemoryState(WireModel):
    """Serialized working memory, persisted alongside the message history"""
    entities: List[Entity] = Field(default_factory=list)
    discovered_tools: List[str] = Field(default_factory=list)
    used_tools: List[ToolUsageRecord] = Field(default_factory=list)
