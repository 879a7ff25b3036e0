from typing import Any, List, Optional
import json

import structlog

from context_engine.domain.exceptions import EstimationError
from context_engine.domain.context.token_estimator import TokenEstimator
from context_engine.domain.models.messages import (
    Message,
    PRUNED_OUTPUT_PLACEHOLDER,
    TextPart,
    ToolCallPart,
    ToolResultPart,
)
from context_engine.domain.models.context_stats import TokenEstimate
from .counters import HeuristicTokenCounter, TokenCounter
from .model_limits import ModelLimitsRegistry

logger = structlog.get_logger(__name__)


def _json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


class ModelLimitsTokenEstimator(TokenEstimator):
    """Counts message tokens with a TokenCounter and sizes them against the model's window"""

    def __init__(self, counter: Optional[TokenCounter] = None, registry: Optional[ModelLimitsRegistry] = None):
        self.counter = counter or HeuristicTokenCounter()
        self.registry = registry or ModelLimitsRegistry()

    def count_part(self, part: Any) -> int:
        if isinstance(part, TextPart):
            return self.counter.count(part.text)
        if isinstance(part, ToolCallPart):
            return self.counter.count(part.tool_name) + self.counter.count(_json(part.args))
        if isinstance(part, ToolResultPart):
            if part.is_compacted:
                return self.counter.count(PRUNED_OUTPUT_PLACEHOLDER)
            return self.counter.count(_json(part.output))
        return 0

    def estimate(self, messages: List[Message], model_id: str) -> TokenEstimate:
        try:
            limits = self.registry.get(model_id)
            current = self.count_messages(messages)
        except EstimationError:
            raise
        except Exception as exc:
            logger.error("Token estimation failed", model_id=model_id, error=str(exc))
            raise EstimationError(f"Token estimation failed for {model_id}: {exc}", model_id=model_id) from exc

        return TokenEstimate(
            current_tokens=current,
            context_limit=limits.context_limit,
            output_reserve=limits.max_output,
            available_tokens=limits.context_limit - limits.max_output - current,
        )
