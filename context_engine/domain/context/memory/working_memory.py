from typing import Any, Dict, Iterable, List, Optional

import structlog

from context_engine.domain.models.working_memory import (
    Entity,
    ToolOutcome,
    ToolUsageRecord,
    WorkingMemoryState,
    utc_now,
)
from .entity_extractor import EntityExtractor

logger = structlog.get_logger(__name__)

MAX_ENTITIES = 10
MAX_DISCOVERED_TOOLS = 20
MAX_ENTITIES_PER_TYPE_RENDERED = 3

TOOL_SEARCH_TOOL = "tool_search"


class WorkingMemoryTracker:
    """Bounded recency caches of referenced entities and discovered/used tools"""

    def __init__(self):
        # Most recently touched first
        self._entities: List[Entity] = []
        # Insertion-ordered; oldest insertions are evicted first
        self._discovered_tools: Dict[str, None] = {}
        self._used_tools: Dict[str, ToolUsageRecord] = {}

    # Entities

    def add(self, entity: Entity) -> None:
        """Insert or refresh an entity at the front, evicting the oldest beyond the cap"""
        touched = entity.model_copy(update={"timestamp": utc_now()})
        self._entities = [e for e in self._entities if e.id != entity.id]
        self._entities.insert(0, touched)
        del self._entities[MAX_ENTITIES:]

    def add_many(self, entities: Iterable[Entity]) -> None:
        for entity in entities:
            self.add(entity)

    def get(self, entity_id: str) -> Optional[Entity]:
        return next((e for e in self._entities if e.id == entity_id), None)

    def entities(self) -> List[Entity]:
        return list(self._entities)

    def size(self) -> int:
        return len(self._entities)

    # Tools

    def add_discovered_tools(self, names: Iterable[str]) -> None:
        """Union names into the discovered set, dropping the oldest insertions beyond the cap"""
        for name in names:
            self._discovered_tools.setdefault(name, None)

        overflow = len(self._discovered_tools) - MAX_DISCOVERED_TOOLS
        if overflow > 0:
            for name in list(self._discovered_tools)[:overflow]:
                del self._discovered_tools[name]

    def remove_tools(self, names: Iterable[str]) -> List[str]:
        """Drop names from the discovered set; returns the ones actually removed"""
        removed = []
        for name in names:
            if name in self._discovered_tools:
                del self._discovered_tools[name]
                removed.append(name)
        if removed:
            logger.debug("Removed discovered tools", tools=removed)
        return removed

    def clear_discovered_tools(self) -> None:
        self._discovered_tools.clear()

    def discovered_tools(self) -> List[str]:
        return list(self._discovered_tools)

    def discovered_tools_count(self) -> int:
        return len(self._discovered_tools)

    def record_tool_usage(self, name: str, outcome: ToolOutcome = ToolOutcome.SUCCESS) -> ToolUsageRecord:
        existing = self._used_tools.get(name)
        record = ToolUsageRecord(
            name=name,
            count=(existing.count if existing else 0) + 1,
            last_used=utc_now(),
            last_result=ToolOutcome(outcome),
        )
        self._used_tools[name] = record
        return record

    def used_tools(self) -> List[ToolUsageRecord]:
        return list(self._used_tools.values())

    def observe_tool_result(
        self,
        tool_name: str,
        output: Any,
        is_error: bool = False,
        extractor: Optional[EntityExtractor] = None,
    ) -> None:
        """Fold one tool result into usage stats, discovered tools and entities"""

        failed = is_error or (isinstance(output, dict) and bool(output.get("error")))
        self.record_tool_usage(tool_name, ToolOutcome.ERROR if failed else ToolOutcome.SUCCESS)

        if tool_name == TOOL_SEARCH_TOOL and isinstance(output, dict) and isinstance(output.get("tools"), list):
            self.add_discovered_tools(t for t in output["tools"] if isinstance(t, str))

        if extractor is not None:
            self.add_many(extractor.extract(tool_name, output))

    # Rendering

    def render_context(self) -> str:
        """Prompt text for the current state; identical state always renders identically"""

        lines: List[str] = []

        if self._entities:
            grouped: Dict[str, List[Entity]] = {}
            for entity in self._entities:
                grouped.setdefault(entity.type, []).append(entity)

            lines.append("[WORKING MEMORY]")
            for entity_type, items in grouped.items():
                lines.append(f"{entity_type}s:")
                for item in items[:MAX_ENTITIES_PER_TYPE_RENDERED]:
                    lines.append(f'  - "{item.name}" ({item.id})')

        if self._discovered_tools:
            if lines:
                lines.append("")
            lines.append("[DISCOVERED TOOLS]")
            lines.append(", ".join(self._discovered_tools))

        return "\n".join(lines)

    # Serialization

    def to_state(self) -> WorkingMemoryState:
        return WorkingMemoryState(
            entities=self.entities(),
            discovered_tools=self.discovered_tools(),
            used_tools=self.used_tools(),
        )

    def serialize(self) -> Dict[str, Any]:
        return self.to_state().to_wire()

    @classmethod
    def from_state(cls, state: WorkingMemoryState) -> "WorkingMemoryTracker":
        tracker = cls()
        tracker._entities = [e.model_copy() for e in state.entities[:MAX_ENTITIES]]
        newest_tools = list(dict.fromkeys(state.discovered_tools))[-MAX_DISCOVERED_TOOLS:]
        tracker._discovered_tools = dict.fromkeys(newest_tools)
        tracker._used_tools = {record.name: record.model_copy() for record in state.used_tools}
        return tracker

    @classmethod
    def deserialize(cls, data: Optional[Dict[str, Any]]) -> "WorkingMemoryTracker":
        if not data:
            return cls()
        return cls.from_state(WorkingMemoryState.model_validate(data))

    def copy(self) -> "WorkingMemoryTracker":
        return WorkingMemoryTracker.from_state(self.to_state())
