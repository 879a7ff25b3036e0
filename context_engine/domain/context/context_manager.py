from typing import List, Optional

import structlog

from context_engine.domain.models.messages import Message, MessageRole
from context_engine.domain.models.conversation import (
    ContextManagerConfig,
    ParseResult,
    TrimResult,
    ValidationResult,
)
from .memory.entity_extractor import EntityExtractor
from .memory.working_memory import WorkingMemoryTracker
from .message_parser import MessageParser
from .turn_validator import TurnValidator
from .context_trimmer import ContextTrimmer

logger = structlog.get_logger(__name__)


class ContextManager:
    """Keeps a tool-using conversation valid and within its message budget"""

    def __init__(
        self,
        config: Optional[ContextManagerConfig] = None,
        extractor: Optional[EntityExtractor] = None,
    ):
        self.config = config or ContextManagerConfig()
        self.parser = MessageParser()
        self.validator = TurnValidator(self.parser)
        self.trimmer = ContextTrimmer(self.validator)
        self.extractor = extractor or EntityExtractor()

    def parse(self, messages: List[Message]) -> ParseResult:
        return self.parser.parse(messages)

    def validate_messages(self, messages: List[Message]) -> ValidationResult:
        """Check tool call/result pairing across a whole history"""
        return self.validator.validate_messages(messages)

    def trim_context(
        self,
        messages: List[Message],
        working_memory: Optional[WorkingMemoryTracker] = None,
    ) -> TrimResult:
        """Trim to the configured budget and forget tools the kept history no longer uses"""

        result = self.trimmer.trim(self.parser.parse(messages), self.config)

        if working_memory is not None and result.removed_tools:
            removed = working_memory.remove_tools(result.removed_tools)
            logger.info(
                "Cleaned discovered tools",
                removed_tools=removed,
                discovered_tools=working_memory.discovered_tools_count(),
            )

        return result

    def observe_tool_results(self, messages: List[Message], working_memory: WorkingMemoryTracker) -> None:
        """Fold every tool result in messages into working memory"""

        for message in messages:
            if message.role != MessageRole.TOOL:
                continue
            for part in message.tool_results():
                working_memory.observe_tool_result(
                    part.tool_name,
                    part.output,
                    is_error=part.is_error,
                    extractor=self.extractor,
                )

        logger.debug(
            "Observed tool results",
            entities=working_memory.size(),
            discovered_tools=working_memory.discovered_tools_count(),
        )
