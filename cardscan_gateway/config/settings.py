"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Upstream credential pool
    # Comma-separated list of Gemini API keys, e.g. "key1,key2,key3"
    gemini_api_keys: str = ""

    # Upstream AI service
    upstream_base_url: str = "https://generativelanguage.googleapis.com"
    upstream_api_version: str = "v1beta"
    upstream_timeout: float = Field(60.0, gt=0)
    upstream_connect_timeout: float = Field(10.0, gt=0)

    # Rotation / retry policy
    max_retries: int = Field(2, ge=0)  # Retries after the first attempt
    retry_delays_ms: list[int] = [500, 1500]  # Backoff before attempt 1, 2, ...
    default_retry_delay_ms: int = Field(1000, ge=0)  # Backoff beyond the table

    # Browser UI access
    cors_allow_origin: str = "*"

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def api_keys_list(self) -> list[str]:
        """Parse the comma-separated key pool, keeping order and dropping blanks."""
        return [k.strip() for k in self.gemini_api_keys.split(",") if k.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
