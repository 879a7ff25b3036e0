"""
Entity extraction from tool results.

Tool outputs come in a handful of shapes. Each shape has one strategy; strategies are
tried in a fixed priority order and the first one that recognises the output wins.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from enum import Enum
import re

import structlog

from context_engine.domain.models.working_memory import Entity

logger = structlog.get_logger(__name__)

_TOOL_NAME_PATTERN = re.compile(r"cms_(get|find|list|create|update|delete|publish|archive)([A-Z]\w+)")

_RESOURCE_KEYWORDS: List[Tuple[Tuple[str, ...], str]] = [
    (("section",), "section"),
    (("page",), "page"),
    (("collection",), "collection"),
    (("entry", "entries"), "entry"),
    (("media",), "media"),
    (("post",), "post"),
    (("image",), "image"),
]

_NESTED_KEYS = ("post", "page", "entry", "section", "image")
_IDENTIFIER_KEYS = ("name", "title", "slug", "sectionKey")


class ResultShape(str, Enum):
    """Recognised tool-result shapes, in extraction priority order"""
    NESTED = "nested"
    SINGLE = "single"
    MATCHES = "matches"
    LIST = "list"
    PAGINATED = "paginated"
    ITEMS = "items"
    POSTS = "posts"


def _string(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    return value if isinstance(value, str) else None


def _has_id(item: Any) -> bool:
    return isinstance(item, dict) and isinstance(item.get("id"), str)


def _is_identifiable(item: Any) -> bool:
    return _has_id(item) and any(isinstance(item.get(key), str) for key in _IDENTIFIER_KEYS)


def infer_type(tool_name: str, output: Any) -> str:
    """Entity type from the result's own type field, else from the tool name"""

    if isinstance(output, dict):
        result_type = _string(output, "type")
        if result_type:
            return result_type.lower()

    match = _TOOL_NAME_PATTERN.search(tool_name)
    if match:
        resource = match.group(2).lower()
        for keywords, entity_type in _RESOURCE_KEYWORDS:
            if any(keyword in resource for keyword in keywords):
                return entity_type
        return resource

    return "resource"


def build_entity(entity_type: str, data: Dict[str, Any]) -> Entity:
    if entity_type in ("section", "pagesection"):
        entity_type = "section"
        name_keys = ("sectionName", "sectionKey", "name", "key")
    elif entity_type == "post":
        name_keys = ("title", "name", "slug")
    else:
        name_keys = ("name", "title", "slug")

    name = next((_string(data, key) for key in name_keys if _string(data, key)), None)
    return Entity(
        type=entity_type,
        id=data["id"],
        name=name or f"Unnamed {entity_type}",
        slug=_string(data, "slug"),
    )


def _identifiable_items(items: Any, limit: int) -> List[Dict[str, Any]]:
    if not isinstance(items, list):
        return []
    return [item for item in items[:limit] if _is_identifiable(item)]


class ExtractionStrategy:
    """Recognises one result shape and turns it into entities"""

    def __init__(
        self,
        shape: ResultShape,
        matches: Callable[[Any], bool],
        extract: Callable[[str, Any], List[Entity]],
    ):
        self.shape = shape
        self.matches = matches
        self.extract = extract


def _nested_matches(output: Any) -> bool:
    return (
        isinstance(output, dict)
        and output.get("success") is True
        and any(_has_id(output.get(key)) for key in _NESTED_KEYS)
    )


def _nested_extract(tool_name: str, output: Dict[str, Any]) -> List[Entity]:
    key = next(key for key in _NESTED_KEYS if _has_id(output.get(key)))
    return [build_entity(key, output[key])]


def _single_extract(tool_name: str, output: Dict[str, Any]) -> List[Entity]:
    return [build_entity(infer_type(tool_name, output), output)]


def _matches_extract(tool_name: str, output: Dict[str, Any]) -> List[Entity]:
    fallback = infer_type(tool_name, output)
    entities = []
    for item in output["matches"][:3]:
        if _has_id(item):
            entities.append(build_entity(_string(item, "type") or fallback, item))
    return entities


def _list_extract(tool_name: str, output: List[Any]) -> List[Entity]:
    entity_type = infer_type(tool_name, output)
    return [build_entity(entity_type, item) for item in _identifiable_items(output, 5)]


def _keyed_list_extract(key: str):
    def extract(tool_name: str, output: Dict[str, Any]) -> List[Entity]:
        entity_type = infer_type(tool_name, output)
        return [build_entity(entity_type, item) for item in _identifiable_items(output[key], 5)]
    return extract


def _posts_extract(tool_name: str, output: Dict[str, Any]) -> List[Entity]:
    return [build_entity("post", item) for item in output["posts"][:5] if _has_id(item)]


def _has_list(key: str) -> Callable[[Any], bool]:
    return lambda output: isinstance(output, dict) and isinstance(output.get(key), list)


DEFAULT_STRATEGIES: List[ExtractionStrategy] = [
    ExtractionStrategy(ResultShape.NESTED, _nested_matches, _nested_extract),
    ExtractionStrategy(ResultShape.SINGLE, lambda o: isinstance(o, dict) and _is_identifiable(o), _single_extract),
    ExtractionStrategy(ResultShape.MATCHES, _has_list("matches"), _matches_extract),
    ExtractionStrategy(ResultShape.LIST, lambda o: isinstance(o, list), _list_extract),
    ExtractionStrategy(ResultShape.PAGINATED, _has_list("data"), _keyed_list_extract("data")),
    ExtractionStrategy(ResultShape.ITEMS, _has_list("items"), _keyed_list_extract("items")),
    ExtractionStrategy(ResultShape.POSTS, _has_list("posts"), _posts_extract),
]


class EntityExtractor:
    """Stateless extractor trying shape strategies in priority order"""

    def __init__(self, strategies: Optional[List[ExtractionStrategy]] = None):
        self.strategies = strategies if strategies is not None else DEFAULT_STRATEGIES

    def classify(self, output: Any) -> Optional[ResultShape]:
        for strategy in self.strategies:
            if strategy.matches(output):
                return strategy.shape
        return None

    def extract(self, tool_name: str, output: Any) -> List[Entity]:
        """Entities referenced by a tool result; empty when no shape matches"""

        for strategy in self.strategies:
            if strategy.matches(output):
                entities = strategy.extract(tool_name, output)
                logger.debug(
                    "Extracted entities",
                    tool_name=tool_name,
                    shape=strategy.shape.value,
                    entity_count=len(entities),
                )
                return entities
        return []
