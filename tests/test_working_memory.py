import pytest

from context_engine.domain.context.memory.entity_extractor import EntityExtractor
from context_engine.domain.context.memory.working_memory import (
    MAX_DISCOVERED_TOOLS,
    MAX_ENTITIES,
    WorkingMemoryTracker,
)
from context_engine.domain.models.working_memory import Entity, ToolOutcome


def entity(entity_id: str, entity_type: str = "page", name: str = None) -> Entity:
    return Entity(type=entity_type, id=entity_id, name=name or f"Name {entity_id}")


class TestWorkingMemoryTracker:
    """Bounded recency caches and rendering"""

    @pytest.fixture
    def memory(self):
        return WorkingMemoryTracker()

    def test_add_prepends(self, memory):
        memory.add(entity("p1"))
        memory.add(entity("p2"))
        assert [e.id for e in memory.entities()] == ["p2", "p1"]

    def test_readd_moves_to_front_without_duplicating(self, memory):
        memory.add_many([entity("p1"), entity("p2"), entity("p3")])
        memory.add(entity("p1", name="Renamed"))

        assert [e.id for e in memory.entities()] == ["p1", "p3", "p2"]
        assert memory.get("p1").name == "Renamed"
        assert memory.size() == 3

    def test_entity_cap_evicts_oldest(self, memory):
        memory.add_many(entity(f"p{i}") for i in range(15))

        assert memory.size() == MAX_ENTITIES
        assert memory.get("p0") is None
        assert memory.get("p4") is None
        assert memory.entities()[0].id == "p14"

    def test_discovered_tools_cap_drops_earliest(self, memory):
        names = [f"tool_{i}" for i in range(25)]
        memory.add_discovered_tools(names)

        assert memory.discovered_tools_count() == MAX_DISCOVERED_TOOLS
        assert memory.discovered_tools() == names[5:]
        for dropped in names[:5]:
            assert dropped not in memory.discovered_tools()

    def test_rediscovered_tool_keeps_insertion_position(self, memory):
        memory.add_discovered_tools(["a", "b", "c"])
        memory.add_discovered_tools(["a", "d"])
        assert memory.discovered_tools() == ["a", "b", "c", "d"]

    def test_remove_tools(self, memory):
        memory.add_discovered_tools(["a", "b", "c"])
        removed = memory.remove_tools(["b", "zzz"])

        assert removed == ["b"]
        assert memory.discovered_tools() == ["a", "c"]

    def test_clear_discovered_tools(self, memory):
        memory.add_discovered_tools(["a"])
        memory.clear_discovered_tools()
        assert memory.discovered_tools_count() == 0

    def test_record_tool_usage(self, memory):
        memory.record_tool_usage("cms_getPage")
        record = memory.record_tool_usage("cms_getPage", ToolOutcome.ERROR)

        assert record.count == 2
        assert record.last_result == ToolOutcome.ERROR
        assert [r.name for r in memory.used_tools()] == ["cms_getPage"]

    def test_render_context(self, memory):
        memory.add(entity("p1", "page", "Home"))
        memory.add(entity("s1", "section", "Hero"))
        memory.add_discovered_tools(["cms_getPage", "cms_listSections"])

        assert memory.render_context() == (
            "[WORKING MEMORY]\n"
            "sections:\n"
            '  - "Hero" (s1)\n'
            "pages:\n"
            '  - "Home" (p1)\n'
            "\n"
            "[DISCOVERED TOOLS]\n"
            "cms_getPage, cms_listSections"
        )

    def test_render_shows_three_per_type(self, memory):
        memory.add_many(entity(f"p{i}") for i in range(5))
        rendered = memory.render_context()

        assert rendered.count("  - ") == 3
        assert "(p4)" in rendered
        assert "(p1)" not in rendered

    def test_render_empty(self, memory):
        assert memory.render_context() == ""

    def test_identical_state_renders_identically(self, memory):
        memory.add_many([entity("p1"), entity("s1", "section")])
        memory.add_discovered_tools(["b", "a"])

        restored = WorkingMemoryTracker.deserialize(memory.serialize())

        assert restored.render_context() == memory.render_context()
        assert memory.render_context() == memory.render_context()

    def test_serialize_round_trip(self, memory):
        memory.add_many([entity("p1"), entity("s1", "section")])
        memory.add_discovered_tools(["a", "b"])
        memory.record_tool_usage("a", ToolOutcome.ERROR)

        data = memory.serialize()
        assert set(data) == {"entities", "discoveredTools", "usedTools"}
        assert data["usedTools"][0]["lastResult"] == "error"

        restored = WorkingMemoryTracker.deserialize(data)
        assert restored.entities() == memory.entities()
        assert restored.discovered_tools() == memory.discovered_tools()
        assert restored.used_tools() == memory.used_tools()

    def test_deserialize_enforces_caps(self):
        data = {
            "entities": [entity(f"p{i}").to_wire() for i in range(12)],
            "discoveredTools": [f"t{i}" for i in range(22)],
            "usedTools": [],
        }
        restored = WorkingMemoryTracker.deserialize(data)

        assert restored.size() == MAX_ENTITIES
        assert restored.discovered_tools() == [f"t{i}" for i in range(2, 22)]

    def test_deserialize_empty(self):
        assert WorkingMemoryTracker.deserialize(None).size() == 0

    def test_copy_is_independent(self, memory):
        memory.add_discovered_tools(["a", "b"])
        clone = memory.copy()
        clone.remove_tools(["a"])

        assert memory.discovered_tools() == ["a", "b"]
        assert clone.discovered_tools() == ["b"]

    def test_observe_tool_search(self, memory):
        memory.observe_tool_result("tool_search", {"tools": ["cms_getPage", "cms_listPosts"], "message": "found"})

        assert memory.discovered_tools() == ["cms_getPage", "cms_listPosts"]
        assert memory.used_tools()[0].last_result == ToolOutcome.SUCCESS

    def test_observe_error_output(self, memory):
        memory.observe_tool_result("cms_getPage", {"error": "not found"})
        memory.observe_tool_result("cms_listPages", [], is_error=True)

        outcomes = {r.name: r.last_result for r in memory.used_tools()}
        assert outcomes == {"cms_getPage": ToolOutcome.ERROR, "cms_listPages": ToolOutcome.ERROR}

    def test_observe_extracts_entities(self, memory):
        memory.observe_tool_result(
            "cms_getPage",
            {"id": "p1", "name": "Home", "slug": "home"},
            extractor=EntityExtractor(),
        )

        page = memory.get("p1")
        assert page.type == "page"
        assert page.slug == "home"
