import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        log_level: str,
        top_categories_limit: int,
        recent_transactions_limit: int,
        refresh_interval_hours: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.log_level = log_level
        self.top_categories_limit = top_categories_limit
        self.recent_transactions_limit = recent_transactions_limit
        self.refresh_interval_hours = refresh_interval_hours


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGERLENS_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledgerlens.db"
    database_url = os.getenv("LEDGERLENS_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("LEDGERLENS_TIMEZONE", "UTC")
    log_level = os.getenv("LEDGERLENS_LOG_LEVEL", "INFO").upper()
    top_categories_limit = int(os.getenv("LEDGERLENS_TOP_CATEGORIES", "5"))
    recent_transactions_limit = int(
        os.getenv("LEDGERLENS_RECENT_TRANSACTIONS", "10")
    )
    refresh_interval_hours = int(os.getenv("LEDGERLENS_REFRESH_HOURS", "1"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        log_level=log_level,
        top_categories_limit=top_categories_limit,
        recent_transactions_limit=recent_transactions_limit,
        refresh_interval_hours=refresh_interval_hours,
    )
