from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    STORE_NAME: str = "CronosMatic"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./cronosmatic.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth (bearer JWT issued by the identity provider)
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"
    ADMIN_ROLE: str = "admin"

    # Cart
    CART_GUEST_TTL_DAYS: int = 7

    # Orders
    ORDER_NUMBER_PREFIX: str = "CM"
    ORDER_NUMBER_MAX_ATTEMPTS: int = 5
    MAX_SHIPPING_COST: Decimal = Decimal("9999.99")

    # Payments (simulated PayPal)
    PAYMENT_SIMULATE_OUTCOME: Literal["success", "failure"] = "success"
    PAYMENT_CURRENCY: str = "MXN"

    # Email (SMTP)
    SMTP_HOST: str = "smtp-relay.brevo.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    DEFAULT_FROM_EMAIL: str = "no-reply@cronosmatic.com"
    DEFAULT_FROM_NAME: str = "CronosMatic"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
