import os
from functools import lru_cache
from pathlib import Path

_TRUTHY = {"1", "true", "yes", "on"}


class Settings:
    def __init__(
        self,
        database_url: str,
        read_only: bool,
        timezone: str,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.read_only = read_only
        self.timezone = timezone
        self.log_level = log_level

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def _ledger_path() -> Path:
    data_dir = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "ledger.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("LEDGER_DATABASE_URL") or f"sqlite:///{_ledger_path()}"
    return Settings(
        database_url=database_url,
        read_only=_env_flag("LEDGER_READ_ONLY", True),
        timezone=os.getenv("LEDGER_TIMEZONE", "America/New_York"),
        log_level=os.getenv("LEDGER_LOG_LEVEL", "INFO").upper(),
    )
