"""Application settings.

Values come from the environment (or a local ``.env`` file) and are
validated once at import time. Import ``Config`` rather than building a
new ``Settings`` instance.
"""

from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # --- storage ---
    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"
    LEDGER_BACKEND: Literal["sql", "memory"] = "sql"
    LEDGER_WRITE_RETRIES: int = Field(default=3, ge=1, le=10)

    # --- tokens ---
    JWT_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 120
    REFRESH_TOKEN_DAYS: int = 3
    COOKIE_SECURE: bool = True

    # --- one-time codes ---
    OTP_LENGTH: int = Field(default=4, ge=4, le=8)
    OTP_TTL_SECONDS: int = 300
    OTP_MAX_ATTEMPTS: int = 5
    OTP_DELIVERY: Literal["log"] = "log"

    # --- http ---
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    RATE_LIMIT_ENABLED: bool = True

    # --- reminder generation ---
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"
    DEFAULT_BUSINESS_NAME: str = "Your Business"

    # --- logging ---
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False


Config = Settings()
