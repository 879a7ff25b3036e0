from typing import List, Optional

from pydantic import Field

from .base import WireModel
from .messages import Message


class ModelLimits(WireModel):
    """Context window limits of a model"""
    context_limit: int = Field(gt=0)
    max_output: int = Field(ge=0)


class TokenEstimate(WireModel):
    """Token accounting snapshot returned by the estimator"""
    current_tokens: int
    context_limit: int
    output_reserve: int
    available_tokens: int

    @property
    def usable_tokens(self) -> int:
        return self.context_limit - self.output_reserve


class ContextStats(WireModel):
    """Token usage snapshot for a session"""
    model_id: str
    current_tokens: int
    available_tokens: int
    context_limit: int
    output_reserve: int
    usage_percent: float
    message_count: int
    pruned_result_count: int = 0
    is_approaching_limit: bool = False
    is_over_limit: bool = False


class PruneResult(WireModel):
    """Outcome of clearing old tool outputs"""
    messages: List[Message]
    outputs_pruned: int = 0
    tokens_saved: int = 0
    pruned_tools: List[str] = Field(default_factory=list)


class CompactionResult(WireModel):
    """Outcome of a compaction request"""
    compacted: bool
    reason: Optional[str] = None
    tokens_before: int = 0
    tokens_after: int = 0
    tokens_saved: int = 0
    compression_ratio: float = 0.0
    pruned_outputs: int = 0
    compacted_messages: int = 0
    removed_tools: List[str] = Field(default_factory=list)
    messages_before: int = 0
    messages_after: int = 0
    turns_removed: int = 0
    invalid_turns_removed: int = 0
