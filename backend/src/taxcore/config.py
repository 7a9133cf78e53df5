"""
Application configuration loaded from environment variables.

All configuration is validated at startup to fail fast on misconfiguration.
The webhook secret is the one exception: it is optional at startup and its
absence is reported per request as a configuration failure, so the deadline
endpoints keep working on deployments without a mail automation.
"""

from decimal import Decimal
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from taxcore.domain.vat import SUPPORTED_VAT_RATES


class Settings(BaseSettings):
    """
    Application settings with validation.
    
    All settings are loaded from environment variables with the same name.
    Use .env file for local development.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./taxcore.db",
        description="SQLAlchemy async connection string (asyncpg or aiosqlite driver)",
    )
    
    # Webhook ingestion
    webhook_secret: SecretStr | None = Field(
        default=None,
        description="Shared secret expected in the x-api-key header of incoming webhooks",
    )
    default_vat_rate: Decimal = Field(
        default=Decimal("21"),
        description="VAT rate (percent) applied to ingested invoice amounts",
    )
    payment_term_days: int = Field(
        default=14,
        ge=0,
        description="Days between invoice date and due date for ingested invoices",
    )
    dependency_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Upper bound for each directory, allocator and storage call",
    )
    
    # Tax deadlines
    business_timezone: str = Field(
        default="Europe/Amsterdam",
        description="Timezone that defines 'today' for deadline status",
    )
    deadline_reminder_days: int = Field(
        default=30,
        ge=0,
        description="Window for the due-soon deadline count",
    )
    
    # Server
    debug: bool = Field(
        default=False,
        description="Enable debug mode with detailed error messages",
    )
    
    @field_validator("default_vat_rate")
    @classmethod
    def _check_vat_rate(cls, value: Decimal) -> Decimal:
        if value not in SUPPORTED_VAT_RATES:
            allowed = ", ".join(str(rate) for rate in SUPPORTED_VAT_RATES)
            raise ValueError(f"Unsupported VAT rate {value}, expected one of {allowed}")
        return value
    
    @field_validator("business_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value
    
    @property
    def timezone(self) -> ZoneInfo:
        """Return the business timezone as a tzinfo object."""
        return ZoneInfo(self.business_timezone)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.
    
    Settings are loaded once at startup and cached for subsequent calls.
    Tests and embedding applications pass their own Settings to create_app().
    """
    return Settings()
