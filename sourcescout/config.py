"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "300"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")

    provider_timeout_seconds: float = float(_get_env("PROVIDER_TIMEOUT_SECONDS", "30"))
    provider_deadline_seconds: float = float(_get_env("PROVIDER_DEADLINE_SECONDS", "45"))
    enrichment_deadline_seconds: float = float(_get_env("ENRICHMENT_DEADLINE_SECONDS", "60"))
    provider_result_limit: int = int(_get_env("PROVIDER_RESULT_LIMIT", "20"))
    default_source_ceiling: int = int(_get_env("DEFAULT_SOURCE_CEILING", "100"))

    scraper_user_agent: str = _get_env("SCRAPER_USER_AGENT", DEFAULT_USER_AGENT)
    scraper_max_retries: int = int(_get_env("SCRAPER_MAX_RETRIES", "3"))
    scraper_retry_delay_seconds: float = float(_get_env("SCRAPER_RETRY_DELAY_SECONDS", "1.0"))

    cj_api_key: str = _get_env("CJ_API_KEY", "")
    cj_api_url: str = _get_env("CJ_API_URL", "https://developers.cjdropshipping.com/api2.0/v1")

    jigsawstack_api_key: str = _get_env("JIGSAWSTACK_API_KEY", "")
    jigsawstack_api_url: str = _get_env("JIGSAWSTACK_API_URL", "https://api.jigsawstack.com/v1")
    jigsawstack_disable_logging: bool = _get_flag("JIGSAWSTACK_DISABLE_LOGGING", "false")


settings = Settings()
