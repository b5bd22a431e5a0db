# app/errors.py
from __future__ import annotations

from typing import Any, Optional

VALIDATION = "validation"
POLICY = "policy"
GATEWAY = "gateway"
CONSISTENCY = "consistency"
NOT_FOUND = "not_found"


class EngineError(Exception):
    """
    Base for every failure the engine reports.

    code/category are stable and surface verbatim to API callers;
    details carries the audit context (pool, round, hold id...).
    """

    code = "ENGINE_ERROR"
    category = VALIDATION

    def __init__(self, message: str, *, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category,
            "details": self.details,
        }


# -------- validation --------

class InvalidConfiguration(EngineError):
    code = "INVALID_CONFIGURATION"


class DuplicateContribution(EngineError):
    code = "DUPLICATE_CONTRIBUTION"


class AmountMismatch(EngineError):
    code = "AMOUNT_MISMATCH"


class PoolNotActive(EngineError):
    code = "POOL_NOT_ACTIVE"


class RoundClosed(EngineError):
    code = "ROUND_CLOSED"


class InvalidTransition(EngineError):
    code = "INVALID_TRANSITION"
    category = CONSISTENCY


# -------- not found --------

class PoolNotFound(EngineError):
    code = "POOL_NOT_FOUND"
    category = NOT_FOUND

    def __init__(self, pool_id: str):
        super().__init__(f"Pool {pool_id} not found", details={"pool_id": pool_id})


class RoundNotFound(EngineError):
    code = "ROUND_NOT_FOUND"
    category = NOT_FOUND

    def __init__(self, pool_id: str, round_number: int):
        super().__init__(
            f"Round {round_number} of pool {pool_id} not found",
            details={"pool_id": pool_id, "round_number": round_number},
        )


class MemberNotFound(EngineError):
    code = "MEMBER_NOT_FOUND"
    category = NOT_FOUND

    def __init__(self, pool_id: str, member_id: str):
        super().__init__(
            f"Member {member_id} is not part of pool {pool_id}",
            details={"pool_id": pool_id, "member_id": member_id},
        )


class HoldNotFound(EngineError):
    code = "HOLD_NOT_FOUND"
    category = NOT_FOUND

    def __init__(self, hold_id: str):
        super().__init__(f"Escrow hold {hold_id} not found", details={"hold_id": hold_id})


# -------- policy --------

class PayoutNotDue(EngineError):
    code = "PAYOUT_NOT_DUE"
    category = POLICY


class ContributionsIncomplete(EngineError):
    code = "CONTRIBUTIONS_INCOMPLETE"
    category = POLICY


class EarlyPayoutNotAllowed(EngineError):
    code = "EARLY_PAYOUT_NOT_ALLOWED"
    category = POLICY


class NoPayoutMethodConfigured(EngineError):
    code = "NO_PAYOUT_METHOD"
    category = POLICY


class ConfirmationRequired(EngineError):
    code = "CONFIRMATION_REQUIRED"
    category = POLICY


class ConfirmationInvalid(EngineError):
    code = "CONFIRMATION_INVALID"
    category = POLICY


# -------- gateway --------

class GatewayAuthorizationFailed(EngineError):
    code = "GATEWAY_AUTHORIZATION_FAILED"
    category = GATEWAY


class HoldExpired(EngineError):
    code = "HOLD_EXPIRED"
    category = GATEWAY


class AlreadyCaptured(EngineError):
    code = "ALREADY_CAPTURED"
    category = GATEWAY


class PayoutDeliveryFailed(EngineError):
    code = "PAYOUT_DELIVERY_FAILED"
    category = GATEWAY


class RequiresManualReconciliation(EngineError):
    """capture/release outcome is unknown or failed after money may have moved."""

    code = "REQUIRES_MANUAL_RECONCILIATION"
    category = GATEWAY


# -------- consistency --------

class ConsistencyViolation(EngineError):
    code = "CONSISTENCY_VIOLATION"
    category = CONSISTENCY


class RoundHalted(EngineError):
    code = "ROUND_HALTED"
    category = CONSISTENCY
