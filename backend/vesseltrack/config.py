from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    VERSION: str = "0.1.0"
    DATABASE_URL: str = "sqlite:///vesseltrack.db"
    LOG_LEVEL: str = "INFO"
    # Connection pool (ignored for SQLite)
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:5173"
    # Auth
    SESSION_TTL_HOURS: int = 24 * 7
    PASSWORD_RESET_TTL_MINUTES: int = 60
    PASSWORD_MIN_LENGTH: int = 6
    # Public URL of the dashboard, used to build password reset links
    APP_URL: str = "http://localhost:5173"
    # Rate limiting on sign-in / sign-up / recovery
    RATE_LIMIT_ENABLED: bool = True
    AUTH_RATE_LIMIT: str = "10/minute"
    # Client settings (CLI dashboard)
    API_URL: str = "http://127.0.0.1:8000/api/v1"
    API_TIMEOUT: float = 30.0
    SESSION_FILE: str = "~/.vesseltrack/session.json"


settings = Settings()
