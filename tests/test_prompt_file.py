import pytest

from context_engine.domain.exceptions import PromptFileError
from context_engine.domain.context.memory.working_memory import WorkingMemoryTracker
from context_engine.domain.models.messages import MessageRole
from context_engine.domain.models.working_memory import Entity
from context_engine.infrastructure.prompts.prompt_file import CachedPromptFile, PromptBuilder


class TestCachedPromptFile:
    """Modification-checked prompt cache"""

    @pytest.fixture
    def prompt_path(self, tmp_path):
        path = tmp_path / "system.md"
        path.write_text("first version", encoding="utf-8")
        return path

    def test_reads_file(self, prompt_path):
        assert CachedPromptFile(prompt_path).read() == "first version"

    def test_serves_cached_text_while_unchanged(self, prompt_path, monkeypatch):
        prompt = CachedPromptFile(prompt_path)
        prompt.read()

        reads = []
        original = type(prompt_path).read_text
        monkeypatch.setattr(type(prompt_path), "read_text", lambda self, **kw: reads.append(1) or original(self, **kw))

        assert prompt.read() == "first version"
        assert reads == []

    def test_reloads_after_change(self, prompt_path):
        prompt = CachedPromptFile(prompt_path)
        prompt.read()

        prompt_path.write_text("second, longer version", encoding="utf-8")

        assert prompt.read() == "second, longer version"

    def test_invalidate_forces_reload(self, prompt_path, monkeypatch):
        prompt = CachedPromptFile(prompt_path)
        prompt.read()
        prompt.invalidate()

        reads = []
        original = type(prompt_path).read_text
        monkeypatch.setattr(type(prompt_path), "read_text", lambda self, **kw: reads.append(1) or original(self, **kw))

        assert prompt.read() == "first version"
        assert reads == [1]

    def test_missing_file(self, tmp_path):
        with pytest.raises(PromptFileError):
            CachedPromptFile(tmp_path / "absent.md").read()


class TestPromptBuilder:
    """System message assembly"""

    def test_base_prompt_only(self, tmp_path):
        path = tmp_path / "system.md"
        path.write_text("Base", encoding="utf-8")

        message = PromptBuilder(CachedPromptFile(path)).build_system_message(WorkingMemoryTracker())

        assert message.role == MessageRole.SYSTEM
        assert message.text() == "Base"

    def test_appends_working_memory(self, tmp_path):
        path = tmp_path / "system.md"
        path.write_text("Base", encoding="utf-8")
        memory = WorkingMemoryTracker()
        memory.add(Entity(type="page", id="p1", name="Home"))

        message = PromptBuilder(CachedPromptFile(path)).build_system_message(memory)

        assert message.text() == 'Base\n\n[WORKING MEMORY]\npages:\n  - "Home" (p1)'
