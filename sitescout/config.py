"""
SiteScout — Configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./sitescout.db",
        description="Async SQLAlchemy DB URL",
    )

    # PageSpeed Insights (optional, neutral scores without key)
    google_pagespeed_api_key: str = Field(
        default="", description="Google PageSpeed Insights API key"
    )
    pagespeed_api_url: str = Field(
        default="https://www.googleapis.com/pagespeedonline/v5/runPagespeed",
    )

    # Timeouts (seconds)
    pagespeed_timeout: float = Field(default=60)
    page_fetch_timeout: float = Field(default=15)
    contact_fetch_timeout: float = Field(default=10)

    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; SiteScout/1.0; +https://sitescout.dev)",
    )

    # Audit cache
    cache_backend: str = Field(
        default="sql",
        description="'sql' (durable, uses database_url) or 'memory' (per-process)",
    )
    cache_expiry_days: int = Field(default=7)
    cache_sweep_interval: int = Field(
        default=3600, description="Seconds between expired-entry sweeps (0 = off)"
    )

    # Stream pacing: PageSpeed allows roughly one call per second
    audit_delay_secs: float = Field(default=1.2)

    # Contact extraction add-on
    contact_extraction_enabled: bool = Field(default=False)

    # CORS
    cors_origins: list[str] = Field(default=["*"])

    @property
    def pagespeed_configured(self) -> bool:
        return bool(self.google_pagespeed_api_key.strip())

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
