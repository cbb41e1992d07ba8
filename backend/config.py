# backend/config.py
from functools import lru_cache
from pathlib import Path
from typing import List

from fastapi import Request
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(env_path), extra="ignore", frozen=True)

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30
    ADMIN_TOKEN_EXPIRE_MINUTES: int = 120
    ADMIN_PASSWORD: str = ""

    DATABASE_URL: str = "sqlite:///./storefront.db"

    FRONTEND_URL: str = "http://localhost:3000"
    # Public backend URL used in email confirmation links
    BACKEND_URL: str = "http://127.0.0.1:8000"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Money is always in minor units (bani / cents)
    FREE_SHIPPING_THRESHOLD_CENTS: int = 19900
    SHIPPING_FLAT_CENTS: int = 1999
    CURRENCY: str = "ron"

    STRIPE_API_URL: str = "https://api.stripe.com"
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    HTTP_TIMEOUT_SECONDS: float = 10.0

    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    MAIL_FROM: str = "Party Shop"
    SMTP_TIMEOUT_SECONDS: float = 10.0

    REQUIRE_EMAIL_VERIFICATION: bool = True

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()


# Request-scoped access to the settings object built once in create_app()
def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings
