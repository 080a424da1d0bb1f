"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


def _csv(value: str) -> frozenset[str]:
    return frozenset(part.strip() for part in value.split(",") if part.strip())


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Ledger Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/ledger_engine"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "console")

    # Ledger
    CURRENCY_DECIMAL_PLACES: int = int(os.getenv("CURRENCY_DECIMAL_PLACES", "2"))
    ENTRY_NUMBER_PREFIX: str = os.getenv("ENTRY_NUMBER_PREFIX", "JE")
    POSTING_MAX_ATTEMPTS: int = int(os.getenv("POSTING_MAX_ATTEMPTS", "3"))
    POSTING_RETRY_BACKOFF_SECONDS: float = float(
        os.getenv("POSTING_RETRY_BACKOFF_SECONDS", "0.05")
    )

    # Reports
    REPORT_CACHE_ENABLED: bool = (
        os.getenv("REPORT_CACHE_ENABLED", "true").lower() == "true"
    )
    CASH_ACCOUNT_SUB_TYPES: frozenset[str] = _csv(
        os.getenv("CASH_ACCOUNT_SUB_TYPES", "CASH,BANK")
    )
    CASH_ACCOUNT_NUMBERS: frozenset[str] = _csv(
        os.getenv("CASH_ACCOUNT_NUMBERS", "")
    )
    INVESTING_SUB_TYPES: frozenset[str] = _csv(
        os.getenv("INVESTING_SUB_TYPES", "FIXED_ASSET,INVESTMENT,INTANGIBLE")
    )
    FINANCING_SUB_TYPES: frozenset[str] = _csv(
        os.getenv("FINANCING_SUB_TYPES", "LOAN,LONG_TERM_DEBT,NOTES_PAYABLE")
    )

    # Budgets
    BUDGET_VARIANCE_ALERT_PERCENT: Decimal = Decimal(
        os.getenv("BUDGET_VARIANCE_ALERT_PERCENT", "10")
    )

    # Pagination
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
