from abc import ABC, abstractmethod
import math

import structlog
import tiktoken

logger = structlog.get_logger(__name__)


class TokenCounter(ABC):
    """Counts tokens in a piece of text"""

    @abstractmethod
    def count(self, text: str) -> int:
        pass


class HeuristicTokenCounter(TokenCounter):
    """~4 characters per token for English text"""

    def count(self, text: str) -> int:
        return math.ceil(len(text) / 4)


class TiktokenCounter(TokenCounter):
    """BPE token count via tiktoken"""

    def __init__(self, encoding_name: str = "cl100k_base"):
        self.encoding_name = encoding_name
        self._encoding = None

    @property
    def encoding(self):
        # Loaded on first use: the encoding file may need downloading
        if self._encoding is None:
            logger.info("Loading tiktoken encoding", encoding=self.encoding_name)
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        return self._encoding

    def count(self, text: str) -> int:
        return len(self.encoding.encode(text, disallowed_special=()))
