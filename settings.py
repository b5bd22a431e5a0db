# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal


DEV_ENVS = {"", "dev", "local", "test"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: str = "dev"

    # -----------------------
    # DB
    # -----------------------
    DATABASE_URL: str = Field(default="")
    REPOSITORY_BACKEND: Literal["memory", "postgres"] = "memory"
    # threads holding a postgres advisory-lock session; keep 2x below db.POOL_MAX_CONN
    LOCK_MAX_SESSIONS: int = Field(default=8, ge=1)

    # -----------------------
    # Payment gateway (Mode Switch)
    # -----------------------
    GATEWAY_MODE: Literal["sandbox", "real"] = "sandbox"
    GATEWAY_BASE_URL: str = ""
    GATEWAY_API_KEY: str = ""
    GATEWAY_HTTP_TIMEOUT_S: float = 20.0

    # -----------------------
    # Escrow / payout policy
    # -----------------------
    # provider-imposed cap on an authorization (cards: 7 days)
    ESCROW_HOLD_MAX_HOURS: int = Field(default=168, ge=1)
    PLATFORM_FEE_CENTS: int = Field(default=0, ge=0)
    PLATFORM_FEE_BPS: int = Field(default=0, ge=0, le=10_000)

    # authorize is the only retried gateway call
    AUTHORIZE_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    AUTHORIZE_BACKOFF_SECONDS: float = Field(default=0.5, ge=0)

    # -----------------------
    # Operator confirmation codes
    # -----------------------
    CODE_VERIFIER_MODE: Literal["dev", "totp"] = "dev"
    OPERATOR_CODE_SECRET: str = ""

    # -----------------------
    # Notifications
    # -----------------------
    NOTIFY_WEBHOOK_URL: str = ""

    # -----------------------
    # Worker / observability
    # -----------------------
    WORKER_POLL_SECONDS: int = 5
    LOG_LEVEL: str = "INFO"


settings = Settings()


def validate_env_settings() -> None:
    """
    Fail startup outside dev when money-moving config is incomplete.
    """
    env = (settings.ENV or "").strip().lower()
    if env in DEV_ENVS:
        return

    missing: list[str] = []
    if settings.REPOSITORY_BACKEND == "postgres" and not settings.DATABASE_URL:
        missing.append("DATABASE_URL")
    if settings.REPOSITORY_BACKEND != "postgres":
        missing.append("REPOSITORY_BACKEND=postgres")
    if settings.GATEWAY_MODE == "real":
        if not settings.GATEWAY_BASE_URL:
            missing.append("GATEWAY_BASE_URL")
        if not settings.GATEWAY_API_KEY:
            missing.append("GATEWAY_API_KEY")
    if settings.CODE_VERIFIER_MODE == "dev":
        missing.append("CODE_VERIFIER_MODE=totp")
    if len(settings.OPERATOR_CODE_SECRET or "") < 16:
        missing.append("OPERATOR_CODE_SECRET")

    if missing:
        raise RuntimeError(f"Invalid {env} configuration: " + ", ".join(missing))
