"""Configuration settings for the Canteen Ledger service."""

from datetime import time
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Flat settings read from environment variables (and an optional .env)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    # Trigger / scheduler
    enable_scheduler: bool | None = Field(default=None, validation_alias="ENABLE_SCHEDULER")
    cron_secret: SecretStr | None = Field(default=None, validation_alias="CRON_SECRET")
    app_base_url: str | None = Field(default=None, validation_alias="APP_BASE_URL")
    report_timezone: str = Field(default="Asia/Kolkata", validation_alias="REPORT_TIMEZONE")
    report_time: time = Field(default=time(0, 1), validation_alias="REPORT_TIME")
    report_recipient: str | None = Field(default=None, validation_alias="REPORT_RECIPIENT")
    currency_symbol: str = Field(default="₹", validation_alias="CURRENCY_SYMBOL")

    # MongoDB
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017", validation_alias="MONGODB_URI"
    )
    mongodb_database: str = Field(default="canteen_ledger", validation_alias="MONGODB_DATABASE")
    mongodb_timeout_ms: int = Field(default=5000, validation_alias="MONGODB_TIMEOUT_MS")

    # WhatsApp Business Cloud API
    waba_access_token: SecretStr | None = Field(default=None, validation_alias="WABA_ACCESS_TOKEN")
    waba_phone_number_id: str | None = Field(default=None, validation_alias="WABA_PHONE_NUMBER_ID")
    waba_api_url: str = Field(
        default="https://graph.facebook.com", validation_alias="WABA_API_URL"
    )
    waba_api_version: str = Field(default="v22.0", validation_alias="WABA_API_VERSION")
    waba_template_name: str = Field(default="expense_report", validation_alias="WABA_TEMPLATE_NAME")
    waba_template_language: str = Field(default="en", validation_alias="WABA_TEMPLATE_LANGUAGE")
    waba_timeout: float = Field(default=30.0, validation_alias="WABA_TIMEOUT")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )

    @field_validator("report_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone {value!r}") from exc
        return value

    @field_validator("cron_secret", "waba_access_token", "app_base_url", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        """Reference timezone for report windows and the daily timer."""
        return ZoneInfo(self.report_timezone)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def scheduler_enabled(self) -> bool:
        """Explicit switch wins; otherwise only production arms the timer."""
        if self.enable_scheduler is not None:
            return self.enable_scheduler
        return self.is_production

    @property
    def trigger_secret(self) -> str | None:
        if self.cron_secret is None:
            return None
        return self.cron_secret.get_secret_value()


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
