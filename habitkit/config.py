from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./habitkit.db"
    DATABASE_ECHO: bool = False

    # Statistics
    COMPLETION_RATE_WINDOW_DAYS: int = 30
    STREAK_MAX_LOOKBACK_DAYS: int = 365

    # Observability
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str = ""

    ENVIRONMENT: str = "development"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
