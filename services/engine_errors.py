# services/engine_errors.py
from __future__ import annotations

from typing import Any

from fastapi import HTTPException

ENGINE_ERROR_HTTP_MAP: dict[str, int] = {
    # validation
    "INVALID_CONFIGURATION": 422,
    "DUPLICATE_CONTRIBUTION": 409,
    "AMOUNT_MISMATCH": 422,
    "POOL_NOT_ACTIVE": 409,
    "ROUND_CLOSED": 409,
    # not found
    "POOL_NOT_FOUND": 404,
    "ROUND_NOT_FOUND": 404,
    "MEMBER_NOT_FOUND": 404,
    "HOLD_NOT_FOUND": 404,
    # policy
    "PAYOUT_NOT_DUE": 409,
    "CONTRIBUTIONS_INCOMPLETE": 409,
    "EARLY_PAYOUT_NOT_ALLOWED": 409,
    "NO_PAYOUT_METHOD": 409,
    "CONFIRMATION_REQUIRED": 401,
    "CONFIRMATION_INVALID": 403,
    # gateway
    "GATEWAY_AUTHORIZATION_FAILED": 402,
    "HOLD_EXPIRED": 409,
    "ALREADY_CAPTURED": 409,
    "PAYOUT_DELIVERY_FAILED": 502,
    "REQUIRES_MANUAL_RECONCILIATION": 502,
    # consistency
    "INVALID_TRANSITION": 409,
    "CONSISTENCY_VIOLATION": 409,
    "ROUND_HALTED": 423,
}


def http_status_for(error: dict[str, Any]) -> int:
    # unknown codes fail closed
    return ENGINE_ERROR_HTTP_MAP.get((error or {}).get("code", ""), 500)


def raise_http_from_engine_error(error: dict[str, Any]) -> None:
    """Turn an OperationResult.error into an HTTPException (detail keeps code/category/details)."""
    status = http_status_for(error)
    if status == 500:
        raise HTTPException(status_code=500, detail="Internal server error")
    raise HTTPException(status_code=status, detail=error)
