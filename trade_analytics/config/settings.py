import sys
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """
    Global analytics settings.
    Read from environment variables (.env) and type-checked on load.
    Every field has a default so an analysis can run with no environment at all.
    """
    # Output currency
    CANONICAL_CURRENCY: str = "USD"

    # FX rate provider
    FX_RATES_URL: str = "https://open.er-api.com/v6/latest/USD"
    FX_CACHE_TTL_SECONDS: int = 3600
    FX_REQUEST_TIMEOUT: int = 10

    # Bucketing (weekday / hour / month)
    ANALYTICS_TZ: str = "UTC"

    # Holdings reconciliation guard: |unrealized| <= multiplier * market value
    UNREALIZED_SANITY_MULTIPLIER: float = 2.0

    # Reject unparseable numbers at ingestion instead of coercing them to 0
    STRICT_NUMERIC: bool = True

    # Application behaviour
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

# Singleton Instance
try:
    settings = Settings()
except Exception as e:
    # logging depends on settings, so report straight to stderr
    print(f"CRITICAL: Failed to load configuration. Invalid env vars? {e}", file=sys.stderr)
    settings = None
