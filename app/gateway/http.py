# app/gateway/http.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.gateway.base import GatewayResult
from app.pools.model import PayoutMethod

logger = logging.getLogger("tanda.gateway")


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[dict[str, Any]]
    text: str


class HttpClient:
    def __init__(self, timeout_s: float = 20.0, follow_redirects: bool = True, transport: httpx.BaseTransport | None = None):
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=follow_redirects, transport=transport)

    def post(
        self,
        url: str,
        *,
        headers: dict[str, str],
        json_body: dict[str, Any] | None = None,
    ) -> HttpResponse:
        r = self._client.post(url, headers=headers, json=json_body)
        return self._wrap(r)

    @staticmethod
    def _wrap(r: httpx.Response) -> HttpResponse:
        try:
            payload = r.json()
        except ValueError:
            payload = None
        return HttpResponse(status_code=r.status_code, json=payload, text=r.text)


def is_retryable_http(code: int) -> bool:
    # Retry transient / throttling / gateway issues
    return code in (408, 425, 429, 500, 502, 503, 504)


class HttpGateway:
    """
    JSON/REST payment gateway client.

    Transport errors and transient HTTP statuses come back as status=unknown:
    for capture/payout the caller must reconcile instead of retrying.
    """

    def __init__(self, *, base_url: str, api_key: str, timeout_s: float = 20.0, client: HttpClient | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._http = client or HttpClient(timeout_s=timeout_s)

    def authorize(self, payer_ref: str, amount_cents: int, *, idempotency_key: str) -> GatewayResult:
        return self._post(
            "/v1/holds",
            {"payer_ref": payer_ref, "amount_cents": int(amount_cents), "capture_method": "manual"},
            idempotency_key,
        )

    def capture(self, hold_ref: str, *, idempotency_key: str) -> GatewayResult:
        return self._post(f"/v1/holds/{hold_ref}/capture", {}, idempotency_key)

    def void(self, hold_ref: str, *, idempotency_key: str) -> GatewayResult:
        return self._post(f"/v1/holds/{hold_ref}/void", {}, idempotency_key)

    def payout(self, method: PayoutMethod, amount_cents: int, *, idempotency_key: str) -> GatewayResult:
        return self._post(
            "/v1/payouts",
            {"method_type": method.type, "handle": method.handle, "amount_cents": int(amount_cents)},
            idempotency_key,
        )

    def _headers(self, idempotency_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Idempotency-Key": idempotency_key,
            "Content-Type": "application/json",
        }

    def _post(self, path: str, body: dict[str, Any], idempotency_key: str) -> GatewayResult:
        url = f"{self.base_url}{path}"
        try:
            resp = self._http.post(url, headers=self._headers(idempotency_key), json_body=body)
        except httpx.HTTPError as exc:
            logger.warning("gateway transport error path=%s key=%s err=%s", path, idempotency_key, exc)
            return GatewayResult(status="unknown", error=f"{type(exc).__name__}: {exc}", retryable=True)

        payload = resp.json or {}
        response = {"http_status": resp.status_code, **payload}
        if 200 <= resp.status_code < 300:
            return GatewayResult(status="succeeded", ref=payload.get("id"), response=response)

        err = payload.get("error") or resp.text[:300] or f"HTTP {resp.status_code}"
        if is_retryable_http(resp.status_code):
            return GatewayResult(status="unknown", response=response, error=err, retryable=True)
        return GatewayResult(status="failed", response=response, error=err, retryable=False)
