"""Application configuration from environment variables."""

import logging
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gatekeeper.lib.models import ModerationCategory


class ProviderKind(str, Enum):
    """Closed set of moderation backends."""

    LOCAL = "local"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    PERSPECTIVE = "perspective"


class ModelProvider(str, Enum):
    """LLM transport types."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OPENROUTER = "openrouter"


class ModelConfig(BaseModel):
    """Configuration for a model assignment."""

    provider: ModelProvider
    model_id: str


# =============================================================================
# Model Assignments
# =============================================================================

PROVIDER_MODELS: dict[ProviderKind, ModelConfig] = {
    ProviderKind.OPENAI: ModelConfig(
        provider=ModelProvider.OPENAI,
        model_id="omni-moderation-latest",
    ),
    ProviderKind.ANTHROPIC: ModelConfig(
        provider=ModelProvider.ANTHROPIC,
        model_id="claude-3-5-haiku-20241022",
    ),
    ProviderKind.GEMINI: ModelConfig(
        provider=ModelProvider.OPENROUTER,
        model_id="google/gemini-2.0-flash-001",
    ),
    ProviderKind.DEEPSEEK: ModelConfig(
        provider=ModelProvider.OPENROUTER,
        model_id="deepseek/deepseek-chat",
    ),
}


# =============================================================================
# Moderation Policy
# =============================================================================


class FastPathConfig(BaseModel):
    """Thresholds for deciding locally without a remote call."""

    enabled: bool = Field(default=True, description="Decide obvious cases locally")
    block_threshold: float = Field(
        default=0.85, ge=0.0, le=1.0, description="Adjusted severity at or above which to deny"
    )
    allow_threshold: float = Field(
        default=0.10, ge=0.0, le=1.0, description="Adjusted severity at or below which to allow"
    )
    min_confidence: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Local confidence floor for any fast decision"
    )
    always_verify_categories: list[ModerationCategory] = Field(
        default_factory=lambda: [
            ModerationCategory.SELF_HARM,
            ModerationCategory.CHILD_SAFETY,
            ModerationCategory.THREATS,
        ],
        description="Categories that always go to a remote classifier",
    )

    @model_validator(mode="after")
    def check_ordering(self) -> "FastPathConfig":
        """Allow threshold must sit strictly below block threshold."""
        if self.allow_threshold >= self.block_threshold:
            raise ValueError(
                f"fast_path.allow_threshold ({self.allow_threshold}) must be "
                f"below block_threshold ({self.block_threshold})"
            )
        return self


class CouncilConfig(BaseModel):
    """Council escalation and voting policy."""

    enabled: bool = Field(default=True)
    members: list[ProviderKind] = Field(
        default_factory=lambda: [ProviderKind.ANTHROPIC, ProviderKind.GEMINI]
    )
    escalate_min: float = Field(default=0.3, ge=0.0, le=1.0)
    escalate_max: float = Field(default=0.7, ge=0.0, le=1.0)
    unanimous_auto_decide: bool = Field(default=True)
    majority_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    send_splits_to_human: bool = Field(default=True)
    send_low_confidence_to_human: bool = Field(default=True)
    member_timeout: float = Field(default=30.0, gt=0.0, description="Seconds per member")
    min_members: int = Field(default=2, ge=1)

    @model_validator(mode="after")
    def check_band(self) -> "CouncilConfig":
        """Escalation band must not be inverted."""
        if self.escalate_min > self.escalate_max:
            raise ValueError(
                f"council.escalate_min ({self.escalate_min}) must not exceed "
                f"escalate_max ({self.escalate_max})"
            )
        return self


class ModeratorConfig(BaseModel):
    """Top-level moderation pipeline configuration."""

    provider: ProviderKind = Field(
        default=ProviderKind.OPENAI, description="Primary remote classifier"
    )
    normalize_text: bool = Field(default=True)
    analyze_context: bool = Field(default=True)
    allow_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    deny_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    primary_timeout: float = Field(default=10.0, gt=0.0, description="Seconds")
    fast_path: FastPathConfig = Field(default_factory=FastPathConfig)
    council: CouncilConfig = Field(default_factory=CouncilConfig)

    @model_validator(mode="after")
    def check_thresholds(self) -> "ModeratorConfig":
        """Allow threshold must sit strictly below deny threshold."""
        if self.allow_threshold >= self.deny_threshold:
            raise ValueError(
                f"allow_threshold ({self.allow_threshold}) must be below "
                f"deny_threshold ({self.deny_threshold})"
            )
        return self


# =============================================================================
# Settings
# =============================================================================


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys
    openai_api_key: str = Field(default="", description="OpenAI API key")
    anthropic_api_key: str = Field(default="", description="Anthropic API key")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")
    perspective_api_key: str = Field(default="", description="Google Perspective API key")

    # Application settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    moderator: ModeratorConfig = Field(default_factory=ModeratorConfig)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Accept any case for the level name."""
        level = str(v).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def has_anthropic_key(self) -> bool:
        """Check if Anthropic API key is configured."""
        return bool(
            self.anthropic_api_key and self.anthropic_api_key != "sk-ant-..."
        )

    @property
    def has_openai_key(self) -> bool:
        """Check if OpenAI API key is configured."""
        return bool(self.openai_api_key and self.openai_api_key != "sk-...")

    @property
    def has_openrouter_key(self) -> bool:
        """Check if OpenRouter API key is configured."""
        return bool(
            self.openrouter_api_key and self.openrouter_api_key != "sk-or-..."
        )

    @property
    def has_perspective_key(self) -> bool:
        """Check if Perspective API key is configured."""
        return bool(self.perspective_api_key)

    def get_model_provider(self, model: str) -> ModelProvider:
        """Determine which transport to use for a given model."""
        if "/" in model:
            return ModelProvider.OPENROUTER
        if model.startswith(("gpt-", "omni-", "text-moderation")):
            return ModelProvider.OPENAI
        if model.startswith("claude-"):
            return ModelProvider.ANTHROPIC
        return ModelProvider.OPENROUTER


# =============================================================================
# Logging
# =============================================================================

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Apply the standard log format to the root logger."""
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


# =============================================================================
# Singleton
# =============================================================================


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
