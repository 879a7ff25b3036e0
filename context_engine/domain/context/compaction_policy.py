from typing import List, NamedTuple, Optional

import structlog

from context_engine.domain.models.messages import Message
from context_engine.domain.models.conversation import ContextManagerConfig, ParseResult
from context_engine.domain.models.context_stats import CompactionResult, ContextStats, TokenEstimate
from .memory.working_memory import WorkingMemoryTracker
from .message_parser import MessageParser
from .context_trimmer import ContextTrimmer
from .token_estimator import TokenEstimator
from .tool_output_pruner import ToolOutputPruner

logger = structlog.get_logger(__name__)

DEFAULT_APPROACHING_THRESHOLD = 0.8
DEFAULT_OVER_LIMIT_THRESHOLD = 1.0
DEFAULT_TARGET_RATIO = 0.6

REASON_NOT_NEEDED = "not needed"
REASON_ALREADY_MINIMAL = "already minimal"
REASON_NOT_POSSIBLE = "no compaction possible"


class CompactionOutcome(NamedTuple):
    messages: List[Message]
    working_memory: WorkingMemoryTracker
    result: CompactionResult


class CompactionPolicy:
    """Decides when to compact and runs pruning, trimming and working-memory cleanup"""

    def __init__(
        self,
        estimator: TokenEstimator,
        pruner: Optional[ToolOutputPruner] = None,
        trimmer: Optional[ContextTrimmer] = None,
        parser: Optional[MessageParser] = None,
        approaching_threshold: float = DEFAULT_APPROACHING_THRESHOLD,
        over_limit_threshold: float = DEFAULT_OVER_LIMIT_THRESHOLD,
        target_ratio: float = DEFAULT_TARGET_RATIO,
    ):
        self.estimator = estimator
        self.pruner = pruner or ToolOutputPruner(estimator)
        self.trimmer = trimmer or ContextTrimmer()
        self.parser = parser or MessageParser()
        self.approaching_threshold = approaching_threshold
        self.over_limit_threshold = over_limit_threshold
        self.target_ratio = target_ratio

    def compute_stats(self, messages: List[Message], model_id: str) -> ContextStats:
        """Token usage snapshot of a history against a model's window"""

        estimate = self.estimator.estimate(messages, model_id)
        usable = max(estimate.usable_tokens, 1)
        usage = estimate.current_tokens / usable

        return ContextStats(
            model_id=model_id,
            current_tokens=estimate.current_tokens,
            available_tokens=estimate.available_tokens,
            context_limit=estimate.context_limit,
            output_reserve=estimate.output_reserve,
            usage_percent=round(usage * 100, 1),
            message_count=len(messages),
            pruned_result_count=sum(
                1 for message in messages for part in message.tool_results() if part.is_compacted
            ),
            is_approaching_limit=usage >= self.approaching_threshold,
            is_over_limit=usage >= self.over_limit_threshold,
        )

    def compact(
        self,
        messages: List[Message],
        working_memory: WorkingMemoryTracker,
        config: ContextManagerConfig,
        model_id: str,
        force: bool = False,
    ) -> CompactionOutcome:
        """
        Compact when usage crosses the approaching threshold, is over the limit or force is set.

        Never fabricates changes: when pruning and trimming remove nothing the input is returned
        untouched with compacted=False. The returned working memory is a copy.
        """

        before = self.compute_stats(messages, model_id)

        if not (force or before.is_approaching_limit or before.is_over_limit):
            return self._unchanged(messages, working_memory, before, REASON_NOT_NEEDED)

        pruned = self.pruner.prune(messages, config.min_turns_to_keep)
        parsed = self.parser.parse(pruned.messages)

        estimate = self.estimator.estimate(pruned.messages, model_id)
        budget = min(config.max_messages, self._message_budget(parsed, estimate))
        trim = self.trimmer.trim(
            parsed,
            ContextManagerConfig(max_messages=budget, min_turns_to_keep=config.min_turns_to_keep),
        )

        if pruned.outputs_pruned == 0 and not trim.changed:
            reason = REASON_NOT_POSSIBLE if before.is_over_limit else REASON_ALREADY_MINIMAL
            return self._unchanged(messages, working_memory, before, reason)

        compacted_memory = working_memory.copy()
        compacted_memory.remove_tools(trim.removed_tools)

        tokens_after = self.estimator.estimate(trim.messages, model_id).current_tokens
        tokens_saved = before.current_tokens - tokens_after

        result = CompactionResult(
            compacted=True,
            tokens_before=before.current_tokens,
            tokens_after=tokens_after,
            tokens_saved=tokens_saved,
            compression_ratio=round(tokens_saved / before.current_tokens, 4) if before.current_tokens else 0.0,
            pruned_outputs=pruned.outputs_pruned,
            compacted_messages=trim.messages_removed,
            removed_tools=trim.removed_tools,
            messages_before=len(messages),
            messages_after=len(trim.messages),
            turns_removed=trim.turns_removed,
            invalid_turns_removed=trim.invalid_turns_removed,
        )

        logger.info(
            "Compacted context",
            model_id=model_id,
            forced=force,
            message_budget=budget,
            tokens_before=result.tokens_before,
            tokens_after=result.tokens_after,
            pruned_outputs=result.pruned_outputs,
            messages_removed=result.compacted_messages,
        )

        return CompactionOutcome(trim.messages, compacted_memory, result)

    def _message_budget(self, parsed: ParseResult, estimate: TokenEstimate) -> int:
        """Messages that fit in target_ratio of the usable window, counted newest first"""

        reserved: List[Message] = []
        if parsed.system_message is not None:
            reserved.append(parsed.system_message)
        reserved.extend(parsed.orphaned_messages)

        remaining = self.target_ratio * estimate.usable_tokens - self.estimator.count_messages(reserved)
        turn_messages = [message for turn in parsed.turns for message in turn.messages()]

        fitted = 0
        for message in reversed(turn_messages):
            remaining -= self.estimator.count_message(message)
            if remaining < 0:
                break
            fitted += 1

        return max(1, len(reserved) + fitted)

    def _unchanged(
        self,
        messages: List[Message],
        working_memory: WorkingMemoryTracker,
        stats: ContextStats,
        reason: str,
    ) -> CompactionOutcome:
        logger.debug("Compaction skipped", reason=reason, usage_percent=stats.usage_percent)
        result = CompactionResult(
            compacted=False,
            reason=reason,
            tokens_before=stats.current_tokens,
            tokens_after=stats.current_tokens,
            messages_before=len(messages),
            messages_after=len(messages),
        )
        return CompactionOutcome(messages, working_memory, result)
