# schemas.py
from __future__ import annotations

from pydantic import BaseModel, Field, RootModel
from datetime import date
from typing import Annotated, Any, Optional, List, Literal, Union

from app.pools.model import Member, PayoutMethod

FrequencyName = Literal["weekly", "biweekly", "monthly"]
PayoutMethodName = Literal["venmo", "paypal", "zelle", "cashapp", "bank"]


# -------- POOLS --------
class PayoutMethodIn(BaseModel):
    type: PayoutMethodName
    handle: str = Field(min_length=1, max_length=200)


class MemberIn(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    display_name: str = Field(min_length=1, max_length=120)
    position: int = Field(ge=1)
    contact: Optional[str] = None
    payout_method: Optional[PayoutMethodIn] = None

    def to_member(self) -> Member:
        method = PayoutMethod(type=self.payout_method.type, handle=self.payout_method.handle) if self.payout_method else None
        return Member(
            id=self.id,
            display_name=self.display_name,
            position=self.position,
            contact=self.contact,
            payout_method=method,
        )


class CreatePoolRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    members: List[MemberIn] = Field(min_length=2)
    contribution_amount_cents: int = Field(gt=0)
    frequency: FrequencyName
    start_date: date
    pool_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class ContributionRequest(BaseModel):
    member_id: str
    amount_cents: int = Field(gt=0)
    # present => escrowed (authorize now, capture at payout)
    payer_ref: Optional[str] = Field(default=None, min_length=1, max_length=200)
    contribution_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class EarlyPayoutRequestIn(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    confirmation_code: Optional[str] = Field(default=None, max_length=12)


class ResolvePayoutRequest(BaseModel):
    confirmed: bool
    gateway_ref: Optional[str] = Field(default=None, max_length=200)


class ResolveHoldRequest(BaseModel):
    captured: bool
    capture_ref: Optional[str] = Field(default=None, max_length=200)


# -------- ACTIONS (tagged union on `action`) --------
class RecordContributionAction(ContributionRequest):
    action: Literal["record_contribution"]


class GetRoundStatusAction(BaseModel):
    action: Literal["get_round_status"]
    round_number: Optional[int] = Field(default=None, ge=1)


class CheckEarlyPayoutEligibilityAction(BaseModel):
    action: Literal["check_early_payout_eligibility"]


class InitiateEarlyPayoutAction(EarlyPayoutRequestIn):
    action: Literal["initiate_early_payout"]


class TriggerScheduledPayoutAction(BaseModel):
    action: Literal["trigger_scheduled_payout"]


class SetPayoutMethodAction(PayoutMethodIn):
    action: Literal["set_payout_method"]
    member_id: str


PoolAction = Annotated[
    Union[
        RecordContributionAction,
        GetRoundStatusAction,
        CheckEarlyPayoutEligibilityAction,
        InitiateEarlyPayoutAction,
        TriggerScheduledPayoutAction,
        SetPayoutMethodAction,
    ],
    Field(discriminator="action"),
]


class PoolActionRequest(RootModel[PoolAction]):
    pass


# -------- RESPONSES --------
class OperationResponse(BaseModel):
    ok: bool
    data: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None
