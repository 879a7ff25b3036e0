from typing import List, Optional

import structlog

from context_engine.domain.models.messages import Message, MessageRole
from context_engine.domain.models.conversation import AssistantExchange, ConversationTurn, ParseResult

logger = structlog.get_logger(__name__)


class MessageParser:
    """Splits a flat message history into a system message, turns and orphans"""

    def parse(self, messages: List[Message]) -> ParseResult:
        """Group messages into turns. Never raises: unplaceable messages become orphans."""

        system_message: Optional[Message] = None
        turns: List[ConversationTurn] = []
        orphans: List[Message] = []

        current: Optional[ConversationTurn] = None
        # Assistant message waiting for a possible tool message
        pending: Optional[AssistantExchange] = None

        def flush_pending() -> None:
            nonlocal pending, current
            if pending is None:
                return
            if current is None:
                current = ConversationTurn(user_message=None)
            current.exchanges.append(pending)
            pending = None

        for index, message in enumerate(messages):
            role = message.role

            if role == MessageRole.SYSTEM:
                if index == 0:
                    system_message = message
                else:
                    orphans.append(message)

            elif role == MessageRole.USER:
                flush_pending()
                if current is not None:
                    turns.append(current)
                current = ConversationTurn(user_message=message)

            elif role == MessageRole.ASSISTANT:
                flush_pending()
                pending = AssistantExchange(assistant_message=message)

            elif role == MessageRole.TOOL:
                if pending is None:
                    orphans.append(message)
                else:
                    pending.tool_message = message
                    flush_pending()

        flush_pending()
        if current is not None:
            turns.append(current)

        if orphans:
            logger.debug("Orphaned messages during parse", orphan_count=len(orphans))

        return ParseResult(system_message=system_message, turns=turns, orphaned_messages=orphans)
