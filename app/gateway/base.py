# app/gateway/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Literal

from app.pools.model import PayoutMethod

GatewayStatus = Literal["succeeded", "failed", "unknown"]


@dataclass(frozen=True)
class GatewayResult:
    # unknown => timeout / 5xx: money may or may not have moved
    status: GatewayStatus
    ref: Optional[str] = None
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    # None => let caller classify based on http_status / error
    retryable: Optional[bool] = None

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"

    @property
    def unknown(self) -> bool:
        return self.status == "unknown"


class PaymentGateway(Protocol):
    def authorize(self, payer_ref: str, amount_cents: int, *, idempotency_key: str) -> GatewayResult: ...
    def capture(self, hold_ref: str, *, idempotency_key: str) -> GatewayResult: ...
    def void(self, hold_ref: str, *, idempotency_key: str) -> GatewayResult: ...
    def payout(self, method: PayoutMethod, amount_cents: int, *, idempotency_key: str) -> GatewayResult: ...
