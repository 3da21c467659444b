"""Configuration for the freight delay monitor.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

The monitor is local-first: no provider credential is required at startup.
Each adapter falls back to synthetic output when its credential is missing.
"""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class MonitorSettings(BaseSettings):
    """Settings for the monitor, its adapters and the reconciliation loop.

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `MonitorSettings(_env_file=None)`.
    """

    openai_api_key: str = Field(
        default="",
        validation_alias="OPENAI_API_KEY",
        description="OpenAI API key used for notification message generation",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        validation_alias="OPENAI_MODEL",
        description="Chat model used for notification message generation",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        validation_alias="OPENAI_TEMPERATURE",
        description="Sampling temperature for message generation",
    )

    google_maps_api_key: str = Field(
        default="",
        validation_alias="GOOGLE_MAPS_API_KEY",
        description="Google Maps key for the Distance Matrix traffic lookup",
    )
    google_maps_base_url: str = Field(
        default="https://maps.googleapis.com/maps/api",
        validation_alias="GOOGLE_MAPS_BASE_URL",
    )

    sendgrid_api_key: str = Field(
        default="",
        validation_alias="SENDGRID_API_KEY",
        description="SendGrid key used for email delivery",
    )
    sendgrid_base_url: str = Field(
        default="https://api.sendgrid.com",
        validation_alias="SENDGRID_BASE_URL",
    )
    notification_email: str = Field(
        default="customer@example.com",
        validation_alias="NOTIFICATION_EMAIL",
        description="Recipient of delay notifications",
    )
    from_email: str = Field(
        default="noreply@yourcompany.com",
        validation_alias="FROM_EMAIL",
        description="Sender address of delay notifications",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    observer_enabled: bool = Field(
        default=True,
        validation_alias="FREIGHT_OBSERVER_ENABLED",
        description="If true, the server runs the reconciliation loop in the background.",
    )
    observer_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        validation_alias="FREIGHT_OBSERVER_INTERVAL_SECONDS",
        description="Polling interval (seconds) of the reconciliation loop.",
    )

    step_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        validation_alias="FREIGHT_STEP_TIMEOUT_SECONDS",
        description="Upper bound on a single traffic lookup attempt.",
    )
    step_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        validation_alias="FREIGHT_STEP_MAX_ATTEMPTS",
        description="Attempts allowed for the traffic lookup before the run fails.",
    )
    step_retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        validation_alias="FREIGHT_STEP_RETRY_BACKOFF_SECONDS",
        description="Base delay between traffic lookup attempts (doubled per attempt).",
    )

    # Dev-friendly CORS for a local dashboard. Override via FREIGHT_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        validation_alias="FREIGHT_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def missing_credentials(self) -> list[str]:
        """Names of provider credentials that are not configured."""

        required = {
            "OPENAI_API_KEY": self.openai_api_key,
            "GOOGLE_MAPS_API_KEY": self.google_maps_api_key,
            "SENDGRID_API_KEY": self.sendgrid_api_key,
        }
        return [name for name, value in required.items() if not value.strip()]

    def report_credentials(self) -> bool:
        """Log which providers will run on fallback data.

        Returns:
            True when every provider credential is set.
        """

        missing = self.missing_credentials()
        if missing:
            logger.warning(
                "Missing provider credentials; the app will use fallback data for missing APIs",
                extra={"missing": missing},
            )
            return False
        logger.info("All provider credentials are set")
        return True
