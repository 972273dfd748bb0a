# settings.py
from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal


DEV_JWT_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    # -----------------------
    # Storage
    # -----------------------
    DATABASE_URL: str = ""
    STORE_BACKEND: Literal["postgres", "memory"] = "postgres"
    DB_POOL_MAX: int = Field(default=10, ge=1)
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000, ge=100)
    DB_LOCK_TIMEOUT_MS: int = Field(default=3000, ge=100)
    # memory backend row-lock wait
    LOCK_TIMEOUT_S: float = Field(default=5.0, gt=0)

    # -----------------------
    # JWT
    # -----------------------
    JWT_SECRET: str = Field(default=DEV_JWT_SECRET, min_length=16)
    JWT_ALG: str = Field(default="HS256")
    JWT_ACCESS_MINUTES: int = Field(default=60)

    # -----------------------
    # Payout policy (fallbacks when platform_settings has no row)
    # -----------------------
    MIN_PAYOUT_AMOUNT: Decimal = Decimal("50")
    PAYOUT_METHODS: str = "bank_transfer,paypal,crypto"

    AUTO_PAYOUT_ENABLED: bool = False
    AUTO_PAYOUT_THRESHOLD: Decimal = Decimal("1000")
    AUTO_PAYOUT_INTERVAL_SECONDS: int = 3600

    # -----------------------
    # Notifications (email function endpoint)
    # -----------------------
    NOTIFY_URL: str = ""
    NOTIFY_API_KEY: str = ""
    NOTIFY_TIMEOUT_S: float = 10.0

    @property
    def payout_methods(self) -> set[str]:
        return {m.strip().lower() for m in (self.PAYOUT_METHODS or "").split(",") if m.strip()}


settings = Settings()


def validate_env_settings() -> None:
    env = (settings.ENV or "dev").strip().lower()
    if env not in {"staging", "prod", "production"}:
        return

    missing: list[str] = []
    if settings.STORE_BACKEND == "memory":
        missing.append("STORE_BACKEND (memory backend is not allowed outside dev)")
    if settings.STORE_BACKEND == "postgres" and not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if settings.JWT_SECRET == DEV_JWT_SECRET or len(settings.JWT_SECRET or "") < 32:
        missing.append("JWT_SECRET")

    if missing:
        raise RuntimeError("Invalid settings for %s: %s" % (env, ", ".join(missing)))
