"""genhub — Application Configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "genhub"
    app_env: Environment = Environment.DEVELOPMENT
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Scheduled trigger ────────────────────────────────────
    # Shared secret expected as "Authorization: Bearer <secret>".
    cron_secret: str = ""

    # ── Job queue ────────────────────────────────────────────
    # Empty = no durable queue; submissions return None and the worker exits.
    redis_url: str = ""
    redis_max_connections: int = 10
    job_queue_name: str = "ai-tasks"
    job_max_attempts: int = Field(3, ge=1)
    job_backoff_seconds: float = Field(5.0, ge=0)
    # Claimed jobs not settled within this window are retried; keep it above the longest job.
    job_lease_seconds: float = Field(3600.0, gt=0)
    worker_concurrency: int = Field(1, ge=1)
    worker_poll_timeout_seconds: float = Field(1.0, gt=0)

    # ── Orchestration ────────────────────────────────────────
    provider_timeout_seconds: float = Field(60.0, gt=0)
    video_timeout_seconds: float = Field(600.0, gt=0)
    video_poll_interval_seconds: float = Field(5.0, gt=0)
    health_check_timeout_seconds: float = Field(30.0, gt=0)
    availability_failure_threshold: int = Field(1, ge=1)

    # ── Provider credentials ─────────────────────────────────
    gemini_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    azure_openai_api_key: str = ""
    azure_openai_endpoint: str = ""
    azure_openai_deployment: str = "gpt-4o"
    azure_openai_api_version: str = "2024-06-01"
    anthropic_api_key: str = ""
    huggingface_api_key: str = ""
    replicate_api_token: str = ""
    seedance_api_key: str = ""
    heygen_api_key: str = ""
    wan_api_key: str = ""
    minimax_api_key: str = ""
    elevenlabs_api_key: str = ""

    # ── Models (env overrides so upgrades need no code change) ─
    gemini_text_model: str = "googleai/gemini-flash-latest"
    gemini_image_model: str = "googleai/gemini-2.5-flash-image"
    gemini_tts_model: str = "googleai/gemini-2.5-flash-preview-tts"
    imagen_image_model: str = "googleai/imagen-4.0-generate-001"
    gemini_video_model: str = "googleai/veo-3.0-generate-001"
    claude_text_model: str = "anthropic/claude-3-5-sonnet"
    openai_text_model: str = "openai/gpt-4o"
    huggingface_text_model: str = "huggingface/HuggingFaceH4/zephyr-7b-beta"
    replicate_image_model: str = "replicate/black-forest-labs/flux-schnell"
    minimax_speech_model: str = "minimax/speech-02-hd"
    elevenlabs_speech_model: str = "elevenlabs/eleven_multilingual_v2"

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def queue_configured(self) -> bool:
        return bool(self.redis_url.strip())

    def configured_providers(self) -> dict[str, bool]:
        """Provider name → whether credentials are present."""
        return {
            "gemini": bool(self.gemini_api_key),
            "imagen": bool(self.gemini_api_key),
            "googleVeo": bool(self.gemini_api_key),
            "openai": bool(self.openai_api_key),
            "azureOpenai": bool(self.azure_openai_api_key and self.azure_openai_endpoint),
            "claude": bool(self.anthropic_api_key),
            "huggingface": bool(self.huggingface_api_key),
            "replicate": bool(self.replicate_api_token),
            "seedance": bool(self.seedance_api_key),
            "heygen": bool(self.heygen_api_key),
            "wan": bool(self.wan_api_key),
            "minimax": bool(self.minimax_api_key),
            "elevenlabs": bool(self.elevenlabs_api_key),
        }

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("redis_url")
    @classmethod
    def _validate_redis_url(cls, v: str) -> str:
        v = v.strip()
        if v and not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("redis_url must start with 'redis://', 'rediss://' or 'unix://'")
        return v

    @model_validator(mode="after")
    def _guard_production_secrets(self) -> Settings:
        """Prevent production from running with an open health-check trigger."""
        if self.app_env == Environment.PRODUCTION and not self.cron_secret:
            raise ValueError("cron_secret must be set in production")
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
