from typing import Dict, Optional

from context_engine.domain.models.context_stats import ModelLimits

DEFAULT_MODEL_KEY = "default"

# Keyed by OpenRouter model id
MODEL_LIMITS: Dict[str, ModelLimits] = {
    # OpenAI
    "openai/gpt-4o": ModelLimits(context_limit=128_000, max_output=16_384),
    "openai/gpt-4o-mini": ModelLimits(context_limit=128_000, max_output=16_384),
    "openai/gpt-4-turbo": ModelLimits(context_limit=128_000, max_output=4_096),
    "openai/gpt-4": ModelLimits(context_limit=8_192, max_output=4_096),
    "openai/gpt-3.5-turbo": ModelLimits(context_limit=16_385, max_output=4_096),
    "openai/o1": ModelLimits(context_limit=200_000, max_output=100_000),
    "openai/o1-mini": ModelLimits(context_limit=128_000, max_output=65_536),
    "openai/o1-preview": ModelLimits(context_limit=128_000, max_output=32_768),
    # Anthropic
    "anthropic/claude-sonnet-4-20250514": ModelLimits(context_limit=200_000, max_output=16_000),
    "anthropic/claude-3.5-sonnet": ModelLimits(context_limit=200_000, max_output=8_192),
    "anthropic/claude-3-5-sonnet-20241022": ModelLimits(context_limit=200_000, max_output=8_192),
    "anthropic/claude-3-opus": ModelLimits(context_limit=200_000, max_output=4_096),
    "anthropic/claude-3-sonnet": ModelLimits(context_limit=200_000, max_output=4_096),
    "anthropic/claude-3-haiku": ModelLimits(context_limit=200_000, max_output=4_096),
    # Google
    "google/gemini-pro": ModelLimits(context_limit=32_000, max_output=8_192),
    "google/gemini-1.5-pro": ModelLimits(context_limit=1_000_000, max_output=8_192),
    "google/gemini-2.0-flash-exp": ModelLimits(context_limit=1_000_000, max_output=8_192),
    # DeepSeek
    "deepseek/deepseek-chat": ModelLimits(context_limit=64_000, max_output=8_192),
    "deepseek/deepseek-coder": ModelLimits(context_limit=64_000, max_output=8_192),
    "deepseek/deepseek-r1": ModelLimits(context_limit=64_000, max_output=8_192),
    DEFAULT_MODEL_KEY: ModelLimits(context_limit=16_000, max_output=4_096),
}

# Substring -> representative model when neither exact nor prefix match hits
FAMILY_FALLBACKS = (
    ("claude", "anthropic/claude-3.5-sonnet"),
    ("gpt-4", "openai/gpt-4o"),
    ("gemini", "google/gemini-1.5-pro"),
)


class ModelLimitsRegistry:
    """Context window lookup by model id"""

    def __init__(self, limits: Optional[Dict[str, ModelLimits]] = None):
        self.limits = dict(limits if limits is not None else MODEL_LIMITS)
        self.limits.setdefault(DEFAULT_MODEL_KEY, MODEL_LIMITS[DEFAULT_MODEL_KEY])

    def register(self, model_id: str, limits: ModelLimits):
        self.limits[model_id] = limits

    def get(self, model_id: str) -> ModelLimits:
        """Exact match, then prefix match, then provider family, then the default"""

        if model_id in self.limits:
            return self.limits[model_id]

        # Longest prefix wins so dated variants resolve to the closest base model
        prefixes = [key for key in self.limits if key != DEFAULT_MODEL_KEY and model_id.startswith(key)]
        if prefixes:
            return self.limits[max(prefixes, key=len)]

        for needle, representative in FAMILY_FALLBACKS:
            if needle in model_id and representative in self.limits:
                return self.limits[representative]

        return self.limits[DEFAULT_MODEL_KEY]
