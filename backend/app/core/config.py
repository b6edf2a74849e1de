# backend/app/core/config.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

# Make backend/.env visible to CLI entrypoints that run outside uvicorn.
load_dotenv(_BACKEND_ROOT / ".env")

logger = logging.getLogger(__name__)


if os.getenv("CI"):
    _DEFAULT_SECRET_KEY: SecretStr | object = SecretStr("ci-test-secret-key-not-for-production")
else:
    _DEFAULT_SECRET_KEY = ...


class Settings(BaseSettings):
    # Use a default secret key for CI/testing environments
    secret_key: SecretStr = Field(
        default=_DEFAULT_SECRET_KEY,
        description="Secret key for JWT tokens",
    )  # type: ignore[assignment]  # defaults to ellipsis outside CI
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # 12 hours

    environment: str = Field(default="development", description="Deployment environment")
    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'coaching.db'}",
        description="SQLAlchemy database URL",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Origins allowed to call the API from a browser",
    )

    # Stripe
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook signing secret",
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")
    stripe_platform_fee_percentage: float = Field(
        default=15, description="Platform fee percentage (15 = 15%)"
    )

    # Booking request lifecycle
    booking_request_ttl_hours: int = Field(
        default=24, description="Hours a pending request waits for the coach before expiring"
    )
    payment_window_hours: int = Field(
        default=2, description="Hours the client has to pay once a coach accepts"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("stripe_platform_fee_percentage")
    @classmethod
    def _fee_in_range(cls, value: float) -> float:
        if value < 0 or value > 100:
            raise ValueError("stripe_platform_fee_percentage must be between 0 and 100")
        return value

    @field_validator("booking_request_ttl_hours", "payment_window_hours")
    @classmethod
    def _positive_hours(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("lifecycle windows must be positive")
        return value

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key.get_secret_value())


settings = Settings()
logger.info(
    "[CONFIG] %s api: environment=%s stripe_configured=%s",
    BRAND_NAME,
    settings.environment,
    settings.stripe_configured,
)
