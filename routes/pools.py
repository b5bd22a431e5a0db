# routes/pools.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Header

from app.commands import (
    CheckEarlyPayoutEligibility,
    CreatePool,
    GetRoundStatus,
    InitiateEarlyPayout,
    RecordContribution,
    SetPayoutMethod,
    TriggerScheduledPayout,
    dispatch,
)
from app.pools.manager import PoolStateManager
from app.results import OperationResult
from deps.engine import get_manager
from deps.operator import require_operator
from schemas import (
    CheckEarlyPayoutEligibilityAction,
    ContributionRequest,
    CreatePoolRequest,
    EarlyPayoutRequestIn,
    GetRoundStatusAction,
    InitiateEarlyPayoutAction,
    OperationResponse,
    PayoutMethodIn,
    PoolActionRequest,
    RecordContributionAction,
    SetPayoutMethodAction,
    TriggerScheduledPayoutAction,
)
from services.engine_errors import raise_http_from_engine_error

logger = logging.getLogger("tanda.api")
router = APIRouter(prefix="/v1/pools", tags=["pools"])


def _respond(result: OperationResult) -> Dict[str, Any]:
    if not result.ok:
        raise_http_from_engine_error(result.error)
    return {"ok": True, "data": result.data, "error": None}


@router.post("", response_model=OperationResponse, status_code=201)
def create_pool(body: CreatePoolRequest, manager: PoolStateManager = Depends(get_manager)):
    cmd = CreatePool(
        name=body.name,
        members=[m.to_member() for m in body.members],
        contribution_amount_cents=body.contribution_amount_cents,
        frequency=body.frequency,
        start_date=body.start_date,
        pool_id=body.pool_id,
    )
    return _respond(dispatch(manager, cmd))


@router.post("/{pool_id}/start", response_model=OperationResponse)
def start_pool(pool_id: str, manager: PoolStateManager = Depends(get_manager)):
    return _respond(manager.start_pool(pool_id))


@router.post("/{pool_id}/pause", response_model=OperationResponse)
def pause_pool(pool_id: str, manager: PoolStateManager = Depends(get_manager)):
    return _respond(manager.pause_pool(pool_id))


@router.post("/{pool_id}/resume", response_model=OperationResponse)
def resume_pool(pool_id: str, manager: PoolStateManager = Depends(get_manager)):
    return _respond(manager.resume_pool(pool_id))


@router.post("/{pool_id}/cancel", response_model=OperationResponse)
def cancel_pool(
    pool_id: str,
    operator: str = Depends(require_operator),
    manager: PoolStateManager = Depends(get_manager),
):
    return _respond(manager.cancel_pool(pool_id, operator=operator))


@router.put("/{pool_id}/members/{member_id}/payout-method", response_model=OperationResponse)
def set_payout_method(
    pool_id: str,
    member_id: str,
    body: PayoutMethodIn,
    manager: PoolStateManager = Depends(get_manager),
):
    return _respond(dispatch(manager, SetPayoutMethod(pool_id, member_id, body.type, body.handle)))


@router.post("/{pool_id}/contributions", response_model=OperationResponse, status_code=201)
def record_contribution(pool_id: str, body: ContributionRequest, manager: PoolStateManager = Depends(get_manager)):
    cmd = RecordContribution(
        pool_id=pool_id,
        member_id=body.member_id,
        amount_cents=body.amount_cents,
        payer_ref=body.payer_ref,
        contribution_id=body.contribution_id,
    )
    return _respond(dispatch(manager, cmd))


@router.get("/{pool_id}/rounds/current", response_model=OperationResponse)
def get_current_round(pool_id: str, manager: PoolStateManager = Depends(get_manager)):
    return _respond(dispatch(manager, GetRoundStatus(pool_id)))


@router.get("/{pool_id}/rounds/{round_number}", response_model=OperationResponse)
def get_round(pool_id: str, round_number: int, manager: PoolStateManager = Depends(get_manager)):
    return _respond(dispatch(manager, GetRoundStatus(pool_id, round_number)))


@router.get("/{pool_id}/early-payout/eligibility", response_model=OperationResponse)
def early_payout_eligibility(pool_id: str, manager: PoolStateManager = Depends(get_manager)):
    return _respond(dispatch(manager, CheckEarlyPayoutEligibility(pool_id)))


@router.post("/{pool_id}/early-payout", response_model=OperationResponse)
def initiate_early_payout(
    pool_id: str,
    body: EarlyPayoutRequestIn,
    operator: str = Depends(require_operator),
    manager: PoolStateManager = Depends(get_manager),
):
    cmd = InitiateEarlyPayout(
        pool_id=pool_id,
        requested_by=operator,
        reason=body.reason,
        confirmation_code=body.confirmation_code,
    )
    return _respond(dispatch(manager, cmd))


@router.post("/{pool_id}/payouts/scheduled", response_model=OperationResponse)
def trigger_scheduled_payout(pool_id: str, manager: PoolStateManager = Depends(get_manager)):
    return _respond(dispatch(manager, TriggerScheduledPayout(pool_id)))


# -----------------------------
# Single action endpoint (tagged union on `action`)
# -----------------------------

_ACTION_COMMANDS: Dict[type, Callable[[str, Any, Optional[str]], Any]] = {
    RecordContributionAction: lambda pid, a, op: RecordContribution(
        pool_id=pid,
        member_id=a.member_id,
        amount_cents=a.amount_cents,
        payer_ref=a.payer_ref,
        contribution_id=a.contribution_id,
    ),
    GetRoundStatusAction: lambda pid, a, op: GetRoundStatus(pid, a.round_number),
    CheckEarlyPayoutEligibilityAction: lambda pid, a, op: CheckEarlyPayoutEligibility(pid),
    InitiateEarlyPayoutAction: lambda pid, a, op: InitiateEarlyPayout(
        pool_id=pid,
        requested_by=op,
        reason=a.reason,
        confirmation_code=a.confirmation_code,
    ),
    TriggerScheduledPayoutAction: lambda pid, a, op: TriggerScheduledPayout(pid),
    SetPayoutMethodAction: lambda pid, a, op: SetPayoutMethod(pid, a.member_id, a.type, a.handle),
}

_OPERATOR_ACTIONS = (InitiateEarlyPayoutAction,)


@router.post("/{pool_id}/actions", response_model=OperationResponse)
def pool_action(
    pool_id: str,
    body: PoolActionRequest,
    manager: PoolStateManager = Depends(get_manager),
    x_operator_id: Optional[str] = Header(default=None),
):
    action = body.root
    operator = None
    if isinstance(action, _OPERATOR_ACTIONS):
        operator = require_operator(x_operator_id)
    cmd = _ACTION_COMMANDS[type(action)](pool_id, action, operator)
    return _respond(dispatch(manager, cmd))
