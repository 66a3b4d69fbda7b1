from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.common.errors import ConfigurationError


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    BASE_URL: str = ""
    CORS_ORIGINS: list[str] = ["*"]

    # Supabase
    # Empty defaults; consumers call ``require`` before use.
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""

    # Storage
    PROGRESS_PHOTO_BUCKET: str = "client-resources"
    VOICE_MESSAGE_BUCKET: str = "voice-messages"
    SIGNED_URL_TTL_SECONDS: int = 3600

    # Local persistence of the auth store
    AUTH_STATE_PATH: str = ".byw/auth-state.json"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_PRICE_WARM_UP: str = ""
    STRIPE_PRICE_TRANSFORMATIONNEL: str = ""
    STRIPE_PRICE_ELITE: str = ""

    # Resend
    RESEND_API_KEY: str = ""
    FROM_EMAIL: str = ""
    FROM_NAME: str = "BYW"

    # Rate limiting
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("BASE_URL", "SUPABASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v

    def require(self, *names: str) -> None:
        """
        Fail fast when any of the named settings is missing or empty.
        """
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

    @property
    def price_ids(self) -> dict[str, str]:
        """Stripe price id -> plan key, only for configured prices."""
        mapping = {
            self.STRIPE_PRICE_WARM_UP: "warm_up",
            self.STRIPE_PRICE_TRANSFORMATIONNEL: "transformationnel",
            self.STRIPE_PRICE_ELITE: "elite",
        }
        return {price: plan for price, plan in mapping.items() if price}


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
