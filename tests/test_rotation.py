from __future__ import annotations

import pytest

from app.errors import InvalidConfiguration
from app.pools.model import Member
from app.pools.rotation import recipient_for, rotation_schedule, validate_positions
from conftest import make_members


@pytest.mark.parametrize("n", [2, 3, 4, 7, 12])
def test_every_member_receives_exactly_once(n):
    members = make_members(n)
    recipients = [recipient_for(members, r) for r in range(1, n + 1)]
    assert sorted(recipients) == sorted(m.id for m in members)
    assert len(set(recipients)) == n


def test_recipient_follows_position_not_list_order():
    members = [
        Member(id="c", display_name="C", position=3),
        Member(id="a", display_name="A", position=1),
        Member(id="b", display_name="B", position=2),
    ]
    assert [recipient_for(members, r) for r in (1, 2, 3)] == ["a", "b", "c"]


def test_rounds_past_member_count_wrap_around():
    members = make_members(3)
    assert recipient_for(members, 4) == "m1"
    assert recipient_for(members, 6) == "m3"


def test_gap_in_positions_falls_back_to_rank():
    # member at position 2 removed without renumbering
    members = [
        Member(id="a", display_name="A", position=1),
        Member(id="c", display_name="C", position=3),
    ]
    assert recipient_for(members, 1) == "a"
    assert recipient_for(members, 2) == "c"


def test_empty_roster_is_invalid():
    with pytest.raises(InvalidConfiguration):
        recipient_for([], 1)


def test_round_zero_is_invalid():
    with pytest.raises(InvalidConfiguration):
        recipient_for(make_members(2), 0)


def test_rotation_schedule_lists_each_round():
    assert rotation_schedule(make_members(3)) == [(1, "m1"), (2, "m2"), (3, "m3")]


def test_validate_positions_rejects_duplicates():
    members = make_members(3)
    members[2].position = 2
    with pytest.raises(InvalidConfiguration) as exc:
        validate_positions(members)
    assert exc.value.details["positions"] == [1, 2, 2]


def test_validate_positions_rejects_gaps():
    members = make_members(3)
    members[2].position = 5
    with pytest.raises(InvalidConfiguration):
        validate_positions(members)


def test_validate_positions_rejects_duplicate_ids():
    members = make_members(2)
    members[1].id = "m1"
    with pytest.raises(InvalidConfiguration):
        validate_positions(members)
