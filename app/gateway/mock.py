# app/gateway/mock.py
from __future__ import annotations

import threading
import uuid
from typing import Any, Optional

from app.gateway.base import GatewayResult
from app.pools.model import PayoutMethod


class MockGateway:
    """
    Sandbox/test gateway.

    Outcomes are scripted per operation: queue results with `script(op, ...)`
    or flip the defaults (`succeed`, `failure_http_status`). Every call is
    recorded in `calls` so tests can count gateway side effects.

    IMPORTANT:
    - On failures, leave retryable unset so callers classify by http_status
      (504 => retry for authorize, unknown for capture/payout).
    """

    OPERATIONS = ("authorize", "capture", "void", "payout")

    def __init__(
        self,
        *,
        succeed: bool = True,
        success_http_status: int = 200,
        failure_http_status: int = 402,
    ):
        self.succeed = succeed
        self.success_http_status = success_http_status
        self.failure_http_status = failure_http_status
        self.calls: list[dict[str, Any]] = []
        self._scripted: dict[str, list[GatewayResult]] = {op: [] for op in self.OPERATIONS}
        self._lock = threading.Lock()
        # idempotency_key -> result (a real gateway dedupes on the key)
        self._seen: dict[tuple[str, str], GatewayResult] = {}

    def script(self, op: str, *results: GatewayResult) -> None:
        with self._lock:
            self._scripted[op].extend(results)

    def count(self, op: str) -> int:
        with self._lock:
            return sum(1 for c in self.calls if c["op"] == op)

    # ---- PaymentGateway ----

    def authorize(self, payer_ref: str, amount_cents: int, *, idempotency_key: str) -> GatewayResult:
        return self._call("authorize", idempotency_key, payer_ref=payer_ref, amount_cents=amount_cents)

    def capture(self, hold_ref: str, *, idempotency_key: str) -> GatewayResult:
        return self._call("capture", idempotency_key, hold_ref=hold_ref)

    def void(self, hold_ref: str, *, idempotency_key: str) -> GatewayResult:
        return self._call("void", idempotency_key, hold_ref=hold_ref)

    def payout(self, method: PayoutMethod, amount_cents: int, *, idempotency_key: str) -> GatewayResult:
        return self._call(
            "payout",
            idempotency_key,
            method_type=method.type,
            handle=method.handle,
            amount_cents=amount_cents,
        )

    def _call(self, op: str, idempotency_key: str, **kwargs: Any) -> GatewayResult:
        with self._lock:
            self.calls.append({"op": op, "idempotency_key": idempotency_key, **kwargs})
            cached = self._seen.get((op, idempotency_key))
            if cached is not None and cached.ok:
                return cached

            res = self._scripted[op].pop(0) if self._scripted[op] else self._default(op)
            if res.ok and not res.ref:
                res = GatewayResult(status="succeeded", ref=self._ref(op), response=res.response)
            self._seen[(op, idempotency_key)] = res
            return res

    def _default(self, op: str) -> GatewayResult:
        if self.succeed:
            return GatewayResult(
                status="succeeded",
                ref=self._ref(op),
                response={"http_status": self.success_http_status, "mock": True},
            )
        return GatewayResult(
            status="failed",
            response={"http_status": self.failure_http_status, "mock": True},
            error="Declined",
        )

    @staticmethod
    def _ref(op: str) -> str:
        return f"mock-{op}-{uuid.uuid4().hex[:12]}"


def failed(error: str = "Declined", http_status: int = 402, retryable: Optional[bool] = None) -> GatewayResult:
    return GatewayResult(status="failed", error=error, response={"http_status": http_status}, retryable=retryable)


def unknown(error: str = "Gateway timeout") -> GatewayResult:
    return GatewayResult(status="unknown", error=error, response={"http_status": 504})
