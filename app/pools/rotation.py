# app/pools/rotation.py
from __future__ import annotations

from typing import Sequence

from app.errors import InvalidConfiguration
from app.pools.model import Member


def recipient_for(members: Sequence[Member], round_number: int) -> str:
    """
    Recipient of round N is the member at position ((N - 1) mod count) + 1.

    Positions are consumed as given; if the roster has gaps (member removed
    without renumbering) the slot falls back to the member occupying that
    rank in ascending position order.
    """
    if not members:
        raise InvalidConfiguration("Pool has no members")
    if round_number < 1:
        raise InvalidConfiguration(f"Round number must be >= 1, got {round_number}")

    ordered = sorted(members, key=lambda m: m.position)
    slot = ((round_number - 1) % len(ordered)) + 1

    for m in ordered:
        if m.position == slot:
            return m.id
    return ordered[slot - 1].id


def rotation_schedule(members: Sequence[Member]) -> list[tuple[int, str]]:
    return [(n, recipient_for(members, n)) for n in range(1, len(members) + 1)]


def validate_positions(members: Sequence[Member]) -> None:
    """Pool-creation check: positions unique and exactly 1..N."""
    if not members:
        raise InvalidConfiguration("Pool has no members")
    positions = [m.position for m in members]
    if len(set(positions)) != len(positions):
        raise InvalidConfiguration(
            "Duplicate member positions",
            details={"positions": sorted(positions)},
        )
    if sorted(positions) != list(range(1, len(members) + 1)):
        raise InvalidConfiguration(
            "Member positions must be exactly 1..N",
            details={"positions": sorted(positions)},
        )
    ids = [m.id for m in members]
    if len(set(ids)) != len(ids):
        raise InvalidConfiguration("Duplicate member ids")
