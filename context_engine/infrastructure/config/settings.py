from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from context_engine.domain.exceptions import ConfigurationError
from context_engine.domain.models.conversation import ContextManagerConfig
from context_engine.domain.context.compaction_policy import CompactionPolicy
from context_engine.domain.context.context_trimmer import ContextTrimmer
from context_engine.domain.context.message_parser import MessageParser
from context_engine.domain.context.tool_output_pruner import ToolOutputPruner
from context_engine.domain.context.turn_validator import TurnValidator
from context_engine.infrastructure.tokens.counters import HeuristicTokenCounter, TiktokenCounter, TokenCounter
from context_engine.infrastructure.tokens.estimator import ModelLimitsTokenEstimator


class ContextSettings(BaseSettings):
    """Runtime configuration, read from CONTEXT_* environment variables or .env"""

    # === Trimming ===
    max_messages: int = Field(default=20, ge=1)
    min_turns_to_keep: int = Field(default=2, ge=0)

    # === Compaction ===
    approaching_threshold: float = Field(default=0.8, gt=0)
    over_limit_threshold: float = Field(default=1.0, gt=0)
    compaction_target_ratio: float = Field(default=0.6, gt=0, le=1)
    prune_protect_tokens: int = Field(default=40_000, ge=0)
    prune_minimum_tokens: int = Field(default=20_000, ge=0)

    # === Models and prompts ===
    default_model_id: str = "openai/gpt-4o-mini"
    tokenizer: Literal["heuristic", "tiktoken"] = "heuristic"
    system_prompt_path: Optional[Path] = None

    # === Service ===
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"
    service_name: str = "context-engine"
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="CONTEXT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> "ContextSettings":
        if self.approaching_threshold > self.over_limit_threshold:
            raise ConfigurationError(
                "approaching_threshold must not exceed over_limit_threshold",
                details={
                    "approaching_threshold": self.approaching_threshold,
                    "over_limit_threshold": self.over_limit_threshold,
                },
            )
        self.log_level = self.log_level.upper()
        return self

    def to_context_config(self) -> ContextManagerConfig:
        return ContextManagerConfig(max_messages=self.max_messages, min_turns_to_keep=self.min_turns_to_keep)

    def build_counter(self) -> TokenCounter:
        if self.tokenizer == "tiktoken":
            return TiktokenCounter()
        return HeuristicTokenCounter()

    def build_policy(self) -> CompactionPolicy:
        """Compaction policy wired from these settings"""

        estimator = ModelLimitsTokenEstimator(self.build_counter())
        parser = MessageParser()
        return CompactionPolicy(
            estimator,
            pruner=ToolOutputPruner(
                estimator,
                prune_protect_tokens=self.prune_protect_tokens,
                prune_minimum_tokens=self.prune_minimum_tokens,
            ),
            trimmer=ContextTrimmer(TurnValidator(parser)),
            parser=parser,
            approaching_threshold=self.approaching_threshold,
            over_limit_threshold=self.over_limit_threshold,
            target_ratio=self.compaction_target_ratio,
        )
