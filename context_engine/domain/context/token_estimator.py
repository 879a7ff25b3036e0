from abc import ABC, abstractmethod
from typing import Any, List

from context_engine.domain.models.messages import Message
from context_engine.domain.models.context_stats import TokenEstimate

# Token overhead for role markers
MESSAGE_OVERHEAD_TOKENS = 4


class TokenEstimator(ABC):
    """Token accounting collaborator keyed by model id"""

    @abstractmethod
    def estimate(self, messages: List[Message], model_id: str) -> TokenEstimate:
        """Count the history against the model's context window"""

    @abstractmethod
    def count_part(self, part: Any) -> int:
        """Token size of a single message part"""

    def count_message(self, message: Message) -> int:
        return MESSAGE_OVERHEAD_TOKENS + sum(self.count_part(part) for part in message.parts())

    def count_messages(self, messages: List[Message]) -> int:
        return sum(self.count_message(message) for message in messages)
