from typing import List
import time

import structlog

from context_engine.domain.models.messages import Message, MessageRole, PRUNED_OUTPUT_PLACEHOLDER
from context_engine.domain.models.context_stats import PruneResult
from .token_estimator import TokenEstimator

logger = structlog.get_logger(__name__)

DEFAULT_PRUNE_PROTECT_TOKENS = 40_000
DEFAULT_PRUNE_MINIMUM_TOKENS = 20_000


class ToolOutputPruner:
    """Clears old tool outputs while keeping call ids so pairing survives"""

    def __init__(
        self,
        estimator: TokenEstimator,
        prune_protect_tokens: int = DEFAULT_PRUNE_PROTECT_TOKENS,
        prune_minimum_tokens: int = DEFAULT_PRUNE_MINIMUM_TOKENS,
    ):
        self.estimator = estimator
        self.prune_protect_tokens = prune_protect_tokens
        self.prune_minimum_tokens = prune_minimum_tokens

    def prune(self, messages: List[Message], min_turns_to_keep: int = 2) -> PruneResult:
        """
        Replace tool outputs older than the newest prune_protect_tokens worth of results.

        Results in the newest min_turns_to_keep turns are never touched. The pruned copy is
        only returned when it saves at least prune_minimum_tokens; otherwise the input is
        returned unchanged.
        """

        pruned = [message.model_copy(deep=True) for message in messages]
        compacted_at = int(time.time() * 1000)

        turns_seen = 0
        running_tokens = 0
        tokens_saved = 0
        outputs_pruned = 0
        pruned_tools: List[str] = []

        for message in reversed(pruned):
            if turns_seen < min_turns_to_keep:
                if message.role == MessageRole.USER:
                    turns_seen += 1
                continue

            if message.role != MessageRole.TOOL:
                continue

            for part in reversed(message.tool_results()):
                if part.is_compacted:
                    continue

                part_tokens = self.estimator.count_part(part)
                running_tokens += part_tokens
                if running_tokens <= self.prune_protect_tokens:
                    continue

                part.output = PRUNED_OUTPUT_PLACEHOLDER
                part.compacted_at = compacted_at
                tokens_saved += part_tokens - self.estimator.count_part(part)
                outputs_pruned += 1
                if part.tool_name not in pruned_tools:
                    pruned_tools.append(part.tool_name)

        if outputs_pruned == 0 or tokens_saved < self.prune_minimum_tokens:
            return PruneResult(messages=list(messages))

        logger.info(
            "Pruned tool outputs",
            outputs_pruned=outputs_pruned,
            tokens_saved=tokens_saved,
            pruned_tools=pruned_tools,
        )

        return PruneResult(
            messages=pruned,
            outputs_pruned=outputs_pruned,
            tokens_saved=tokens_saved,
            pruned_tools=pruned_tools,
        )
