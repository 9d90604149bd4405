"""Configuration management for genplan."""

import logging
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Use standard logging for settings module to avoid circular imports
logger = logging.getLogger(__name__)


# Sensitive environment variable names, masked in repr and in `config show`
SENSITIVE_ENV_VAR_NAMES: frozenset = frozenset({"GEMINI_API_KEY", "API_KEY"})

_SENSITIVE_FIELD_NAMES: frozenset = frozenset({"gemini_api_key"})


class CoreSettings(BaseSettings):
    """Settings for the generation pipeline, read from the environment."""

    model_config = SettingsConfigDict(extra="ignore")

    _SENSITIVE_FIELDS: frozenset = _SENSITIVE_FIELD_NAMES

    def __repr__(self) -> str:
        """Return a representation with sensitive fields masked."""
        field_strs = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name, None)
            if field_name in self._SENSITIVE_FIELDS:
                masked = f"<{len(str(value))} chars>" if value else "None"
                field_strs.append(f"{field_name}={masked!r}")
            else:
                field_strs.append(f"{field_name}={value!r}")
        return f"{self.__class__.__name__}({', '.join(field_strs)})"

    def __str__(self) -> str:
        return self.__repr__()

    # Credentials
    gemini_api_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY")
    )

    # Model tiers
    ai_model_pro: str = Field("gemini-2.5-pro", validation_alias="AI_MODEL_PRO")
    ai_model_flash: str = Field("gemini-2.5-flash", validation_alias="AI_MODEL_FLASH")
    ai_model_flash_lite: str = Field(
        "gemini-flash-lite-latest", validation_alias="AI_MODEL_FLASH_LITE"
    )
    ai_model_image: str = Field(
        "gemini-2.5-flash-image", validation_alias="AI_MODEL_IMAGE"
    )
    ai_model_video: str = Field(
        "veo-3.1-fast-generate-preview", validation_alias="AI_MODEL_VIDEO"
    )
    ai_model_imagen: str = Field(
        "imagen-4.0-generate-001", validation_alias="AI_MODEL_IMAGEN"
    )
    ai_model_speech: str = Field(
        "gemini-2.5-flash-preview-tts", validation_alias="AI_MODEL_SPEECH"
    )

    # Per-step generation budgets
    default_max_output_tokens: int = Field(
        8192,
        validation_alias="DEFAULT_MAX_OUTPUT_TOKENS",
        ge=256,
        description="Response length cap applied to steps that do not set their own.",
    )
    default_thinking_budget: int = Field(
        8192,
        validation_alias="DEFAULT_THINKING_BUDGET",
        ge=0,
        description="Internal reasoning allowance applied to steps that do not set their own.",
    )

    # Rate-limit retry policy
    retry_max_attempts: int = Field(3, validation_alias="RETRY_MAX_ATTEMPTS", ge=1, le=10)
    retry_initial_delay: float = Field(
        2.0, validation_alias="RETRY_INITIAL_DELAY", ge=0.0
    )
    retry_backoff_factor: float = Field(
        2.0, validation_alias="RETRY_BACKOFF_FACTOR", ge=1.0
    )

    # Long-running operation polling
    poll_interval_seconds: float = Field(
        10.0, validation_alias="POLL_INTERVAL_SECONDS", gt=0.0
    )
    poll_max_attempts: Optional[int] = Field(
        None,
        validation_alias="POLL_MAX_ATTEMPTS",
        ge=1,
        description="Give up after this many polls. Unset means poll until the service finishes.",
    )

    # Result download
    download_timeout_seconds: float = Field(
        120.0, validation_alias="DOWNLOAD_TIMEOUT_SECONDS", gt=0.0
    )

    # Logging configuration
    log_level: str = Field(
        "INFO",
        validation_alias="LOG_LEVEL",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    json_logs: bool = Field(False, validation_alias="JSON_LOGS")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("json_logs", mode="before")
    @classmethod
    def parse_bool_from_env(cls, v: Any) -> bool:
        """Handle empty strings and various boolean representations from env vars."""
        if v is None or v == "":
            return False
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower().strip() in ("true", "1", "yes")
        return bool(v)

    @field_validator("poll_max_attempts", mode="before")
    @classmethod
    def empty_as_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


# Alias kept for callers that only need "the settings"
Settings = CoreSettings


def load_settings() -> CoreSettings:
    """Load settings from the environment."""
    settings = CoreSettings()
    logger.debug(f"Loaded settings: {settings!r}")
    return settings
