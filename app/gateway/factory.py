# app/gateway/factory.py
from __future__ import annotations

from typing import Any, Dict

_GATEWAY_CACHE: Dict[str, Any] = {}


def get_gateway(settings):
    mode = (settings.GATEWAY_MODE or "sandbox").strip().lower()

    if mode in _GATEWAY_CACHE:
        return _GATEWAY_CACHE[mode]

    if mode == "sandbox":
        from app.gateway.mock import MockGateway
        gateway = MockGateway()

    elif mode == "real":
        from app.gateway.http import HttpGateway
        if not settings.GATEWAY_BASE_URL:
            raise RuntimeError("GATEWAY_BASE_URL is required when GATEWAY_MODE=real")
        gateway = HttpGateway(
            base_url=settings.GATEWAY_BASE_URL,
            api_key=settings.GATEWAY_API_KEY,
            timeout_s=settings.GATEWAY_HTTP_TIMEOUT_S,
        )

    else:
        raise RuntimeError(f"Unsupported GATEWAY_MODE: {mode}")

    _GATEWAY_CACHE[mode] = gateway
    return gateway


def reset_gateway_cache() -> None:
    _GATEWAY_CACHE.clear()
