"""Application settings and CORS configuration."""

import json
import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "SnapSolve"
    ENVIRONMENT: str = "development"  # development | production | test

    # CORS
    # Accept list or CSV/JSON string from env; normalized to list[str] by validators
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    ALLOW_CREDENTIALS: bool = True

    # Vision model provider
    LLM_PROVIDER: str = "openai"  # openai | gemini
    OPENAI_API_KEY: str | None = None
    GEMINI_API_KEY: str | None = None
    VISION_MODEL: str = "gpt-4o"
    MODEL_TEMPERATURE: float = 0.0
    MODEL_MAX_TOKENS: int = 2000

    # Upstream call budget
    UPSTREAM_TIMEOUT_SECONDS: float = 60.0
    UPSTREAM_RETRY_ATTEMPTS: int = 2
    UPSTREAM_RETRY_BACKOFF_SECONDS: float = 0.5
    UPSTREAM_RETRY_STATUSES: list[int] = [502, 503, 504]

    # Inbound payload bound (base64 characters, roughly 75 MiB of image)
    MAX_IMAGE_BASE64_CHARS: int = 100 * 1024 * 1024

    # Per-observer buffered events before new events are dropped for it
    OBSERVER_QUEUE_SIZE: int = 256

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for CORS origins."""
        if isinstance(v, list):
            return [str(i).strip() for i in v]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        "CORS_ORIGINS must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON must be a list")
                return [str(i).strip() for i in parsed]
            # CSV fallback
            return [i.strip() for i in s.split(",") if i.strip()]
        raise ValueError("Invalid CORS_ORIGINS type; expected str or list[str]")

    @field_validator("LLM_PROVIDER", mode="before")
    @classmethod
    def normalize_provider(cls, v: object) -> str:
        provider = str(v or "openai").strip().lower()
        if provider not in {"openai", "gemini"}:
            raise ValueError("LLM_PROVIDER must be 'openai' or 'gemini'")
        return provider

    @field_validator("UPSTREAM_RETRY_ATTEMPTS")
    @classmethod
    def non_negative_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("UPSTREAM_RETRY_ATTEMPTS must be >= 0")
        return v

    @model_validator(mode="after")
    def _validate_cors_credentials(self) -> "Settings":
        """Ensure wildcard origins are not used when credentials are allowed."""
        # Normalize in case the union allows a stray string at runtime
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = self.assemble_cors_origins(self.CORS_ORIGINS)
        if self.ALLOW_CREDENTIALS and any(
            o.strip() == "*" for o in (self.CORS_ORIGINS or [])
        ):
            raise ValueError(
                "CORS configuration error: ALLOW_CREDENTIALS=True but "
                "CORS_ORIGINS contains '*'. Use explicit origins when credentials "
                "are allowed."
            )
        return self

    @property
    def provider_label(self) -> str:
        """Human-facing provider name used in error answers."""
        return "Gemini" if self.LLM_PROVIDER == "gemini" else "OpenAI"


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""

    # pydantic-settings accepts a runtime-only `_env_file` kwarg that mypy's
    # stub does not know about.
    settings = Settings(_env_file=env_file or None)  # type: ignore[call-arg]

    # In production the configured provider must have a key; fail fast rather
    # than answering every request with an upstream error.
    if env == "production":
        key = (
            settings.GEMINI_API_KEY
            if settings.LLM_PROVIDER == "gemini"
            else settings.OPENAI_API_KEY
        )
        if not key:
            raise RuntimeError(
                f"An API key for LLM_PROVIDER={settings.LLM_PROVIDER} must be set "
                "in production"
            )
    return settings
