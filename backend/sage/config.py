"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process
    - Every rate-limit tier has its own window and request budget

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sage.core.domain_types import RateLimitTier
from sage.core.rate_limit import RateLimitConfig


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://sage:sage@db:5432/sage"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Anthropic
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_max_retries: int = 3
    anthropic_timeout_seconds: int = 300
    anthropic_base_delay_ms: int = 1000
    anthropic_max_delay_ms: int = 60_000

    # Conversation loop
    agent_model: str = "claude-sonnet-4-5"
    agent_max_tokens: int = 8192
    agent_max_turns: int = 10

    # Admission control (sliding window per tier)
    rate_limit_general_window_ms: int = 60_000
    rate_limit_general_max_requests: int = 100
    rate_limit_chat_window_ms: int = 60_000
    rate_limit_chat_max_requests: int = 20
    rate_limit_auth_window_ms: int = 60_000
    rate_limit_auth_max_requests: int = 10
    rate_limit_cleanup_interval_seconds: int = 300

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def rate_limit_config(self, tier: RateLimitTier) -> RateLimitConfig:
        match tier:
            case RateLimitTier.GENERAL:
                return RateLimitConfig(
                    self.rate_limit_general_window_ms, self.rate_limit_general_max_requests,
                )
            case RateLimitTier.CHAT:
                return RateLimitConfig(
                    self.rate_limit_chat_window_ms, self.rate_limit_chat_max_requests,
                )
            case RateLimitTier.AUTH:
                return RateLimitConfig(
                    self.rate_limit_auth_window_ms, self.rate_limit_auth_max_requests,
                )

    @property
    def longest_rate_limit_window_ms(self) -> int:
        return max(self.rate_limit_config(t).window_ms for t in RateLimitTier)


@lru_cache
def get_settings() -> Settings:
    return Settings()
