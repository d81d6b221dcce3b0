"""Usage-Governor configuration via pydantic-settings."""

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "api_key": "insecure-admin-key-change-me",
}


class GovernorSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GOVERNOR_")

    environment: str = "development"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/governor.db"
    db_busy_timeout: float = 30.0  # seconds a SQLite writer waits for the lock

    # API
    api_title: str = "Usage-Governor"
    api_version: str = "0.1.0"
    api_key: str = "insecure-admin-key-change-me"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    log_level: str = "INFO"

    # Global rate ceilings, shared across all features per user
    hourly_rate_limit: int = 100
    daily_rate_limit: int = 500

    # Balance view
    recent_transactions_limit: int = 20

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"GOVERNOR_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}. "
                "Generate secrets with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default admin key, set GOVERNOR_API_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> GovernorSettings:
    settings = GovernorSettings()
    settings.validate_for_production()
    return settings
