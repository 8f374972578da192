import os
import sys
from dataclasses import dataclass, field, replace
from dotenv import load_dotenv

# Fix encoding on Windows
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")

load_dotenv()


@dataclass(frozen=True)
class ModelConfig:
    """A model an AI player can be bound to. Unset sampling values come from Config."""
    id: str
    name: str
    model: str
    temperature: float | None = None
    max_tokens: int | None = None

    def with_defaults(self, temperature: float, max_tokens: int) -> "ModelConfig":
        return replace(
            self,
            temperature=self.temperature if self.temperature is not None else temperature,
            max_tokens=self.max_tokens if self.max_tokens is not None else max_tokens,
        )


DEFAULT_MODELS = {
    "claude-sonnet": ModelConfig("claude-sonnet", "Claude Sonnet", "claude-sonnet-4-5-20250929"),
    "claude-haiku": ModelConfig("claude-haiku", "Claude Haiku", "claude-haiku-4-5-20251001"),
    "claude-opus": ModelConfig("claude-opus", "Claude Opus", "claude-opus-4-1-20250805"),
}

GAME_SPEEDS = ("slow", "normal", "fast")


def _optional_int(name: str) -> int | None:
    value = os.getenv(name, "")
    return int(value) if value else None


@dataclass
class Config:
    # LLM
    anthropic_api_key: str = field(default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""))
    default_model: str = field(default_factory=lambda: os.getenv("AGENTARENA_DEFAULT_MODEL", "claude-sonnet"))
    llm_max_tokens: int = field(default_factory=lambda: int(os.getenv("AGENTARENA_MAX_TOKENS", "1000")))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("AGENTARENA_TEMPERATURE", "0.7")))
    request_retries: int = field(default_factory=lambda: int(os.getenv("AGENTARENA_REQUEST_RETRIES", "3")))
    request_timeout: float = field(default_factory=lambda: float(os.getenv("AGENTARENA_REQUEST_TIMEOUT", "30")))
    cache_ttl: float = field(default_factory=lambda: float(os.getenv("AGENTARENA_CACHE_TTL", "300")))
    models: dict[str, ModelConfig] = field(default_factory=lambda: dict(DEFAULT_MODELS))

    # Game
    thinking_time: float = field(default_factory=lambda: float(os.getenv("AGENTARENA_THINKING_TIME", "30")))
    game_speed: str = field(default_factory=lambda: os.getenv("AGENTARENA_GAME_SPEED", "normal"))
    random_seed: int | None = field(default_factory=lambda: _optional_int("AGENTARENA_SEED"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("AGENTARENA_LOG_LEVEL", "INFO"))

    def __post_init__(self):
        self.models = {
            model_id: model.with_defaults(self.llm_temperature, self.llm_max_tokens)
            for model_id, model in self.models.items()
        }

    @property
    def has_llm(self) -> bool:
        return bool(self.anthropic_api_key)

    def get_model(self, model_id: str) -> ModelConfig | None:
        return self.models.get(model_id)

    def validate(self) -> list[str]:
        errors = []
        if not self.anthropic_api_key:
            errors.append("ANTHROPIC_API_KEY not set (AI players fall back to heuristics)")
        if self.default_model not in self.models:
            errors.append(f"Default model '{self.default_model}' is not a known model")
        if self.thinking_time <= 0:
            errors.append("Thinking time must be positive")
        if self.game_speed not in GAME_SPEEDS:
            errors.append(f"Game speed must be one of {', '.join(GAME_SPEEDS)}")
        if not 0 <= self.llm_temperature <= 1:
            errors.append("Temperature must be between 0 and 1")
        return errors
