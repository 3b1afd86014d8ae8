# backend/mindcare/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # unknown keys in .env are ignored so shared env files don't break startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Database ---
    ASYNC_DATABASE_URL: str = "sqlite+aiosqlite:///./mindcare.db"
    AUTO_CREATE_TABLES: bool = False

    # --- Auth ---
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # --- Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    MAX_LOG_LENGTH: int = 200
    SLOW_REQUEST_THRESHOLD: float = 2.0

    # --- HTTP ---
    ALLOWED_CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"
    STATIC_DIR: str = "static"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # --- Booking ---
    SLOT_MINUTES: int = 60

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")


settings = Settings()
