"""
Configuration system with environment-based settings.
Uses pydantic-settings for validation and type safety.

Every field has a working default, so the service starts with no
environment at all (in-memory rate limiting, JSON logs).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_VERSION: str = "1.0.0"
    ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Page fetch
    FETCH_TIMEOUT_SECONDS: float = Field(15.0, gt=0)
    FETCH_MAX_BYTES: int = Field(5 * 1024 * 1024, ge=1024)
    FETCH_MAX_REDIRECTS: int = Field(10, ge=0)
    FETCH_USER_AGENT: str = "AIReadabilityAnalyzer/1.0 (page analysis)"

    # robots.txt / sitemap / llms.txt probes
    PROBE_TIMEOUT_SECONDS: float = Field(5.0, gt=0)
    PROBE_MAX_BYTES: int = Field(512 * 1024, ge=1024)
    PROBE_USER_AGENT: str = "AIReadabilityAnalyzer/1.0 (bot-access probe)"

    # Rate limiting
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = "memory"
    RATE_LIMIT_WINDOW_SECONDS: int = Field(60, ge=1)
    RATE_LIMIT_MAX_REQUESTS: int = Field(10, ge=1)
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = Field(300.0, gt=0)
    TRUST_PROXY_HEADERS: bool = True

    # Redis, read only by the redis rate-limit backend
    REDIS_DSN: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: float = 5.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors(cls, v: str | list) -> list:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @model_validator(mode="after")
    def check_user_agents(self) -> "Settings":
        if self.FETCH_USER_AGENT == self.PROBE_USER_AGENT:
            raise ValueError("FETCH_USER_AGENT and PROBE_USER_AGENT must differ")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - created once per process."""
    return Settings()
