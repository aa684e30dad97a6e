from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://bodymind:bodymind@db:5432/bodymind"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # How long a SQLite writer waits for another writer's lock.
    SQLITE_BUSY_TIMEOUT_SECONDS: float = 15.0

    # IANA zone that defines the local midnight day boundary.
    TIMEZONE: str = "UTC"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # WHOOP developer API
    WHOOP_API_BASE: str = "https://api.prod.whoop.com"
    WHOOP_FETCH_TIMEOUT_SECONDS: float = 5.0
    WHOOP_SYNC_LOOKBACK_DAYS: int = 7
    WHOOP_MAX_PAGES: int = 10

    # Rows scanned backward when computing a habit stack's streak day.
    STACK_STREAK_LOOKBACK: int = 30

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
