# app/config.py
from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel, ConfigDict, Field

from app.errors import InvalidConfiguration


class EngineConfig(BaseModel):
    """
    Policy knobs for the engine, built once at the boundary and injected.

    Defaults:
      escrow_hold_max_hours=168   authorization validity window (card auths: 7 days)
      platform_fee_cents=0        flat fee taken from each release
      platform_fee_bps=0          percentage fee (basis points) taken from each release
      authorize_max_attempts=3    authorize is the only retried gateway call
      authorize_backoff_seconds=0.5  base delay, doubled per attempt
    """

    model_config = ConfigDict(frozen=True)

    escrow_hold_max_hours: int = Field(default=168, ge=1)
    platform_fee_cents: int = Field(default=0, ge=0)
    platform_fee_bps: int = Field(default=0, ge=0, le=10_000)
    authorize_max_attempts: int = Field(default=3, ge=1)
    authorize_backoff_seconds: float = Field(default=0.5, ge=0)

    @property
    def hold_window(self) -> timedelta:
        return timedelta(hours=self.escrow_hold_max_hours)

    def platform_fee_for(self, gross_amount_cents: int) -> int:
        """Fee comes off the release, never off individual contributions."""
        fee = self.platform_fee_cents + (gross_amount_cents * self.platform_fee_bps) // 10_000
        if fee >= gross_amount_cents:
            raise InvalidConfiguration(
                "Platform fee would consume the whole payout",
                details={"gross_amount_cents": gross_amount_cents, "fee_cents": fee},
            )
        return fee

    @classmethod
    def from_settings(cls, s) -> "EngineConfig":
        return cls(
            escrow_hold_max_hours=s.ESCROW_HOLD_MAX_HOURS,
            platform_fee_cents=s.PLATFORM_FEE_CENTS,
            platform_fee_bps=s.PLATFORM_FEE_BPS,
            authorize_max_attempts=s.AUTHORIZE_MAX_ATTEMPTS,
            authorize_backoff_seconds=s.AUTHORIZE_BACKOFF_SECONDS,
        )
