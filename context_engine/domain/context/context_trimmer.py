from typing import List, Optional, Set

import structlog

from context_engine.domain.models.messages import Message
from context_engine.domain.models.conversation import (
    ContextManagerConfig,
    ConversationTurn,
    ParseResult,
    TrimResult,
)
from .turn_validator import TurnValidator

logger = structlog.get_logger(__name__)


class ContextTrimmer:
    """Reduces a parsed history to a message budget without splitting exchanges"""

    def __init__(self, validator: Optional[TurnValidator] = None):
        self.validator = validator or TurnValidator()

    def trim(self, parsed: ParseResult, config: ContextManagerConfig) -> TrimResult:
        """
        Keep the newest turns within config.max_messages.

        The newest config.min_turns_to_keep valid turns are kept even when they alone
        exceed the budget. Invalid turns inside that floor are repaired by dropping the
        offending exchanges; invalid turns outside it are dropped whole.
        """

        reserved = (1 if parsed.system_message is not None else 0) + len(parsed.orphaned_messages)
        budget = max(0, config.max_messages - reserved)

        kept: List[ConversationTurn] = []
        kept_messages = 0
        floor_kept = 0
        budget_exhausted = False
        turns_removed = 0
        invalid_turns_removed = 0
        candidate_tools: Set[str] = set()

        for turn in reversed(parsed.turns):
            validation = self.validator.validate(turn)

            if floor_kept < config.min_turns_to_keep:
                if not validation.is_valid:
                    logger.warning("Repairing invalid turn", issues=validation.issues, protected=True)
                    invalid_turns_removed += 1
                    turn, dropped_tools = self._repair(turn)
                    candidate_tools.update(dropped_tools)
                    if turn is None:
                        continue
                kept.append(turn)
                kept_messages += turn.message_count
                floor_kept += 1
                continue

            if not validation.is_valid:
                logger.warning("Dropping invalid turn", issues=validation.issues, protected=False)
                invalid_turns_removed += 1
                candidate_tools.update(turn.tool_names())
                continue

            if not budget_exhausted and kept_messages + turn.message_count <= budget:
                kept.append(turn)
                kept_messages += turn.message_count
                continue

            # Kept turns stay contiguous: once one valid turn misses, all older ones go
            budget_exhausted = True
            turns_removed += 1
            candidate_tools.update(turn.tool_names())

        kept.reverse()

        output: List[Message] = []
        if parsed.system_message is not None:
            output.append(parsed.system_message)
        output.extend(parsed.orphaned_messages)
        for turn in kept:
            output.extend(turn.messages())

        active_tools: Set[str] = set()
        for turn in kept:
            active_tools.update(turn.tool_names())

        result = TrimResult(
            messages=output,
            removed_tools=sorted(candidate_tools - active_tools),
            active_tools=sorted(active_tools),
            messages_removed=parsed.message_count - len(output),
            turns_removed=turns_removed,
            invalid_turns_removed=invalid_turns_removed,
        )

        logger.info(
            "Trimmed context",
            messages_before=parsed.message_count,
            messages_after=len(output),
            max_messages=config.max_messages,
            turns_kept=len(kept),
            turns_removed=turns_removed,
            invalid_turns_removed=invalid_turns_removed,
            removed_tools=result.removed_tools,
        )

        return result

    def _repair(self, turn: ConversationTurn):
        """Drop the exchanges that break pairing; None if nothing worth keeping is left"""

        valid_exchanges = []
        dropped_tools: Set[str] = set()
        for index, exchange in enumerate(turn.exchanges):
            if self.validator.validate_exchange(exchange, index).is_valid:
                valid_exchanges.append(exchange)
            else:
                dropped_tools.update(exchange.tool_names())

        if turn.user_message is None and not valid_exchanges:
            return None, dropped_tools

        repaired = ConversationTurn(user_message=turn.user_message, exchanges=valid_exchanges, is_valid=True)
        return repaired, dropped_tools
