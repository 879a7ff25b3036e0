from typing import List, Optional

from context_engine.domain.models.messages import Message
from context_engine.domain.models.conversation import AssistantExchange, ConversationTurn, ValidationResult
from .message_parser import MessageParser


class TurnValidator:
    """Checks that every tool call is answered by exactly one tool result"""

    def __init__(self, parser: Optional[MessageParser] = None):
        self.parser = parser or MessageParser()

    def validate_exchange(self, exchange: AssistantExchange, index: int = 0) -> ValidationResult:
        issues: List[str] = []
        prefix = f"Exchange {index}"
        call_ids = exchange.tool_call_ids

        if exchange.tool_message is None:
            if call_ids:
                issues.append(
                    f"{prefix}: assistant has {len(call_ids)} tool call(s) but no tool message follows"
                )
            return ValidationResult(is_valid=not issues, issues=issues)

        if not call_ids:
            issues.append(f"{prefix}: tool message follows an assistant message with no tool calls")

        seen = set()
        for result in exchange.tool_message.tool_results():
            if result.tool_call_id in seen:
                issues.append(f"{prefix}: duplicate tool result for call id {result.tool_call_id}")
            seen.add(result.tool_call_id)

        result_ids = exchange.tool_result_ids
        for call_id in sorted(call_ids - result_ids):
            issues.append(f"{prefix}: missing tool result for call id {call_id}")
        for result_id in sorted(result_ids - call_ids):
            issues.append(f"{prefix}: unexpected tool result id {result_id}")

        return ValidationResult(is_valid=not issues, issues=issues)

    def validate(self, turn: ConversationTurn) -> ValidationResult:
        """Validate every exchange of a turn; the turn is valid only if all are"""

        issues: List[str] = []
        for index, exchange in enumerate(turn.exchanges):
            issues.extend(self.validate_exchange(exchange, index).issues)

        turn.is_valid = not issues
        return ValidationResult(is_valid=turn.is_valid, issues=issues)

    def validate_messages(self, messages: List[Message]) -> ValidationResult:
        """Parse and validate a whole history"""

        parsed = self.parser.parse(messages)
        issues: List[str] = []
        for position, turn in enumerate(parsed.turns):
            result = self.validate(turn)
            issues.extend(f"Turn {position}: {issue}" for issue in result.issues)

        if parsed.orphaned_messages:
            issues.append(f"found {len(parsed.orphaned_messages)} orphaned message(s)")

        return ValidationResult(is_valid=not issues, issues=issues)
