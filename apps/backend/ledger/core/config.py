from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Ledger Backend"
    ENV: str = "dev"

    # Default SQLite file DB next to apps/backend, absolute so CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Background renewal of fixed series
    RENEWAL_ENABLED: bool = True
    RENEWAL_STARTUP_DELAY_SECONDS: float = 2.0
    RENEWAL_INTERVAL_HOURS: float = 24.0

    # Horizon presets (months ahead of "now")
    EXPANSION_HORIZON_MONTHS: int = 12
    RENEWAL_HORIZON_MONTHS: int = 36

    # Renewal policy
    RENEWAL_LOOKAHEAD_MONTHS: int = 6
    RENEWAL_MIN_FUTURE_OCCURRENCES: int = 3
    RENEWAL_COOLDOWN_MINUTES: int = 60
    RENEWAL_MAX_COUNT: int = 50

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="LEDGER_", case_sensitive=False)


settings = Settings()
