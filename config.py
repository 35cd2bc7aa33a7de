import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        secret_key: str,
        token_max_age_hours: int,
        default_currency: str,
        log_level: str,
        pool_size: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.secret_key = secret_key
        self.token_max_age_hours = token_max_age_hours
        self.default_currency = default_currency
        self.log_level = log_level
        self.pool_size = pool_size


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "ledger.db"
        database_url = f"sqlite:///{default_db}"
    timezone = os.getenv("LEDGER_TIMEZONE", "Asia/Kolkata")
    secret_key = os.getenv(
        "LEDGER_SECRET_KEY",
        "4d1f0b8e6c2a47f1a9e3d5c7b8a6f0e2d4c6b8a0f2e4d6c8b0a2f4e6d8c0b2a4",
    )
    token_max_age_hours = int(os.getenv("LEDGER_TOKEN_MAX_AGE_HOURS", "168"))
    default_currency = os.getenv("LEDGER_DEFAULT_CURRENCY", "INR").upper()
    log_level = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
    pool_size = int(os.getenv("LEDGER_POOL_SIZE", "20"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        secret_key=secret_key,
        token_max_age_hours=token_max_age_hours,
        default_currency=default_currency,
        log_level=log_level,
        pool_size=pool_size,
    )
