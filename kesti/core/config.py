# kesti/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./kesti.db"

    # Display currency for receipts and unit prices
    CURRENCY: str = "TND"

    # Rate limits (slowapi syntax)
    CHECKOUT_RATE_LIMIT: str = "30/minute"

    # Sales history
    RECENT_SALES_DEFAULT_LIMIT: int = 10

    # Frontend
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="forbid",
    )


settings = Settings()
