from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.commands import ClearRoundHalt, ExpireStaleHolds, ResolveHold, ResolvePayout, dispatch
from app.pools.manager import PoolStateManager
from deps.engine import get_manager
from deps.operator import require_operator
from routes.pools import _respond
from schemas import OperationResponse, ResolveHoldRequest, ResolvePayoutRequest
from services.reconcile import run_reconcile

logger = logging.getLogger("tanda.api")
router = APIRouter(prefix="/v1/admin", tags=["admin-reconcile"])


@router.get("/reconcile")
def reconcile_report(
    operator: str = Depends(require_operator),
    manager: PoolStateManager = Depends(get_manager),
):
    report = run_reconcile(manager.repository)
    logger.info("reconcile report requested operator=%s summary=%s", operator, report["summary"])
    return report


@router.post("/pools/{pool_id}/rounds/{round_number}/resolve-payout", response_model=OperationResponse)
def resolve_payout(
    pool_id: str,
    round_number: int,
    body: ResolvePayoutRequest,
    operator: str = Depends(require_operator),
    manager: PoolStateManager = Depends(get_manager),
):
    cmd = ResolvePayout(
        pool_id=pool_id,
        round_number=round_number,
        confirmed=body.confirmed,
        operator=operator,
        gateway_ref=body.gateway_ref,
    )
    return _respond(dispatch(manager, cmd))


@router.post("/pools/{pool_id}/holds/{hold_id}/resolve", response_model=OperationResponse)
def resolve_hold(
    pool_id: str,
    hold_id: str,
    body: ResolveHoldRequest,
    operator: str = Depends(require_operator),
    manager: PoolStateManager = Depends(get_manager),
):
    cmd = ResolveHold(
        pool_id=pool_id,
        hold_id=hold_id,
        captured=body.captured,
        operator=operator,
        capture_ref=body.capture_ref,
    )
    return _respond(dispatch(manager, cmd))


@router.post("/pools/{pool_id}/rounds/{round_number}/clear-halt", response_model=OperationResponse)
def clear_round_halt(
    pool_id: str,
    round_number: int,
    operator: str = Depends(require_operator),
    manager: PoolStateManager = Depends(get_manager),
):
    return _respond(dispatch(manager, ClearRoundHalt(pool_id, round_number, operator)))


@router.post("/pools/{pool_id}/expire-holds", response_model=OperationResponse)
def expire_stale_holds(
    pool_id: str,
    operator: str = Depends(require_operator),
    manager: PoolStateManager = Depends(get_manager),
):
    return _respond(dispatch(manager, ExpireStaleHolds(pool_id)))
