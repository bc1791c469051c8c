"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PRODUCTION_URL = "https://buy.itunes.apple.com/verifyReceipt"
SANDBOX_URL = "https://sandbox.itunes.apple.com/verifyReceipt"


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "App Store Receipts API"
    api_version: str = "0.1.0"
    api_description: str = "In-app purchase receipt verification against the App Store"

    # App Store verifyReceipt
    appstore_production: bool = False  # False: 21007 receipts are retried against sandbox
    appstore_production_url: str = PRODUCTION_URL
    appstore_sandbox_url: str = SANDBOX_URL
    appstore_shared_secret: str | None = None  # Only needed for auto-renewable products
    appstore_timeout_seconds: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True
    service_name: str = "appstore-receipts-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if the App Store endpoints are unusable.
        """
        errors: list[str] = []

        for name in ("appstore_production_url", "appstore_sandbox_url"):
            url: str = getattr(self, name)
            if not url.startswith(("https://", "http://")):
                errors.append(f"{name.upper()} must be an http(s) URL, got: {url[:40]!r}")

        if self.appstore_timeout_seconds <= 0:
            errors.append(
                f"APPSTORE_TIMEOUT_SECONDS must be positive, got: {self.appstore_timeout_seconds}"
            )

        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format!r}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def appstore_environment(self) -> str:
        """Human-readable environment name for logs and metrics."""
        return "production" if self.appstore_production else "non_production"


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
