from __future__ import annotations

from app.commands import (
    HANDLERS,
    CheckEarlyPayoutEligibility,
    CreatePool,
    GetRoundStatus,
    RecordContribution,
    StartPool,
    dispatch,
)
from conftest import START_DATE, make_members


def test_every_command_has_a_handler():
    assert len(HANDLERS) == 15


def test_dispatch_runs_the_manager_operation(manager):
    created = dispatch(
        manager,
        CreatePool(
            name="Cmd tanda",
            members=make_members(3),
            contribution_amount_cents=1000,
            frequency="biweekly",
            start_date=START_DATE,
            pool_id="cmd",
        ),
    )
    assert created.ok, created.error
    assert dispatch(manager, StartPool("cmd")).ok

    paid = dispatch(manager, RecordContribution(pool_id="cmd", member_id="m2", amount_cents=1000))
    assert paid.ok, paid.error

    status = dispatch(manager, GetRoundStatus("cmd"))
    assert status.data["missing_contributors"] == ["m1", "m3"]

    eligibility = dispatch(manager, CheckEarlyPayoutEligibility("cmd"))
    assert eligibility.data["eligibility"]["allowed"] is False


def test_unknown_command_is_a_failure_result(manager):
    res = dispatch(manager, object())
    assert not res.ok
    assert res.error_code == "INVALID_CONFIGURATION"
    assert "StartPool" in res.error["details"]["known"]
