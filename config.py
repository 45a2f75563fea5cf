import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Ensure .env is loaded at import time
load_dotenv()

_log = logging.getLogger(__name__)


class Settings(BaseModel):
    # env-sourced defaults go through the validators too
    model_config = ConfigDict(validate_default=True)

    # ── Server ────────────────────────────────────────────────────────────────
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: int(os.getenv("PORT", "3001")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    cors_origins: list[str] = Field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # ── HTTP timeouts (seconds) ───────────────────────────────────────────────
    # The redirect hop request only reads headers, the final fetch downloads a full page.
    redirect_timeout_sec: float = Field(default_factory=lambda: float(os.getenv("REDIRECT_TIMEOUT_SEC", "10")))
    mercadolivre_timeout_sec: float = Field(
        default_factory=lambda: float(os.getenv("MERCADOLIVRE_TIMEOUT_SEC", "15"))
    )
    amazon_timeout_sec: float = Field(default_factory=lambda: float(os.getenv("AMAZON_TIMEOUT_SEC", "20")))

    # ── Redirect limits ───────────────────────────────────────────────────────
    max_redirect_hops: int = Field(default_factory=lambda: int(os.getenv("MAX_REDIRECT_HOPS", "5")))
    amazon_max_redirect_hops: int = Field(default_factory=lambda: int(os.getenv("AMAZON_MAX_REDIRECT_HOPS", "3")))
    fetch_max_redirects: int = Field(default_factory=lambda: int(os.getenv("FETCH_MAX_REDIRECTS", "5")))

    @field_validator("redirect_timeout_sec", "mercadolivre_timeout_sec", "amazon_timeout_sec")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("max_redirect_hops", "amazon_max_redirect_hops", "fetch_max_redirects")
    @classmethod
    def non_negative_limit(cls, v: int) -> int:
        if v < 0:
            raise ValueError("redirect limits must be >= 0")
        return v


def load_settings() -> Settings:
    return Settings()


# Module-level settings cache to avoid repeated initialization
_settings_cache: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings, loading from .env if needed."""
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
        _log.debug("Settings loaded: %s", _settings_cache.model_dump())
    return _settings_cache


def reset_settings_cache() -> Settings:
    """Drop the cached settings and reload them from the environment."""
    global _settings_cache
    _settings_cache = None
    return get_settings()
