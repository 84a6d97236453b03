"""
Configuration Management for the Ledger Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The derivation functions never read settings directly. Callers build an
EngineContext from these values (see ledger_engine.engine.context) and pass
it into every calculation, so a single request always sees one consistent
set of thresholds and one reference date.
"""

from datetime import date
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Derivation thresholds and import policy."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    import_cutoff_date: date = Field(
        default=date(2026, 2, 12),
        description="Imported transactions dated before this are pruned and hidden"
    )
    anomaly_multiplier: Decimal = Field(
        default=Decimal("1.5"),
        gt=1,
        description="Category spend above rolling average x multiplier is an anomaly"
    )
    rolling_window_months: int = Field(
        default=3,
        ge=1,
        le=24,
        description="Months used for the rolling category average"
    )
    forecast_window_months: int = Field(
        default=6,
        ge=2,
        le=36,
        description="Trailing months used by the spending forecast"
    )
    app_version: str = Field(
        default="0.1.0",
        description="Version stamped into exported backups"
    )


class BankFeedSettings(BaseSettings):
    """Shared HTTP behaviour for bank-feed providers."""

    model_config = SettingsConfigDict(
        env_prefix="BANK_FEED_",
        extra="ignore"
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Timeout applied to every provider request"
    )
    max_connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for requests that failed before reaching the provider"
    )


class PlaidSettings(BaseSettings):
    """Plaid API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PLAID_",
        extra="ignore"
    )

    client_id: str = Field(
        ...,
        description="Plaid client id"
    )
    secret: str = Field(
        ...,
        description="Plaid secret for the selected environment"
    )
    environment: str = Field(
        default="sandbox",
        description="sandbox, development or production"
    )

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in {"sandbox", "development", "production"}:
            raise ValueError(f"Unknown Plaid environment: {v}")
        return normalized

    @property
    def base_url(self) -> str:
        return f"https://{self.environment}.plaid.com"


class SimpleFinSettings(BaseSettings):
    """SimpleFIN bridge configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SIMPLEFIN_",
        extra="ignore"
    )

    default_institution_name: str = Field(
        default="SimpleFIN Institution",
        description="Used when the bridge does not report an organisation name"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing Plaid key does not stop
    # a SimpleFIN-only or offline installation from starting.

    @property
    def engine(self) -> EngineSettings:
        return EngineSettings()

    @property
    def bank_feed(self) -> BankFeedSettings:
        return BankFeedSettings()

    @property
    def plaid(self) -> PlaidSettings:
        return PlaidSettings()

    @property
    def simplefin(self) -> SimpleFinSettings:
        return SimpleFinSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing each failure. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("engine", "bank_feed", "plaid", "simplefin"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
