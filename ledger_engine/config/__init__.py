"""Configuration package."""

from ledger_engine.config.settings import (
    BankFeedSettings,
    EngineSettings,
    PlaidSettings,
    Settings,
    SimpleFinSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "BankFeedSettings",
    "EngineSettings",
    "PlaidSettings",
    "Settings",
    "SimpleFinSettings",
    "get_settings",
    "validate_all_settings",
]
