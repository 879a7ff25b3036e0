from pathlib import Path
from typing import Optional, Tuple, Union

import structlog

from context_engine.domain.exceptions import PromptFileError
from context_engine.domain.models.messages import Message
from context_engine.domain.context.memory.working_memory import WorkingMemoryTracker

logger = structlog.get_logger(__name__)


class CachedPromptFile:
    """Prompt text read from disk, reloaded only when the file changes"""

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding
        self._text: Optional[str] = None
        self._signature: Optional[Tuple[int, int]] = None

    def _stat(self) -> Tuple[int, int]:
        try:
            stat = self.path.stat()
        except OSError as exc:
            raise PromptFileError(f"Prompt file unavailable: {self.path}", details={"path": str(self.path)}) from exc
        return stat.st_mtime_ns, stat.st_size

    def read(self) -> str:
        signature = self._stat()
        if self._text is not None and signature == self._signature:
            return self._text

        try:
            text = self.path.read_text(encoding=self.encoding)
        except (OSError, UnicodeDecodeError) as exc:
            raise PromptFileError(f"Prompt file unreadable: {self.path}", details={"path": str(self.path)}) from exc

        logger.info("Loaded prompt file", path=str(self.path), size=signature[1])
        self._text = text
        self._signature = signature
        return text

    def invalidate(self):
        self._text = None
        self._signature = None


class PromptBuilder:
    """Builds the system message from the base prompt and working memory"""

    def __init__(self, prompt_file: CachedPromptFile):
        self.prompt_file = prompt_file

    def build_system_message(self, working_memory: Optional[WorkingMemoryTracker] = None) -> Message:
        text = self.prompt_file.read()
        context = working_memory.render_context() if working_memory is not None else ""
        if context:
            text = f"{text}\n\n{context}"
        return Message.system(text)
