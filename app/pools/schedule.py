from __future__ import annotations

import calendar
from datetime import date, timedelta

from app.errors import InvalidConfiguration


def _add_months(d: date, months: int) -> date:
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    # clamp to month end (Jan 31 + 1 month -> Feb 28/29)
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def scheduled_payout_date(start_date: date, frequency: str, round_number: int) -> date:
    """
    Payout date of round N, always derived from the pool start date.
    Early payouts never shift it.
    """
    steps = round_number - 1
    if frequency == "weekly":
        return start_date + timedelta(days=7 * steps)
    if frequency == "biweekly":
        return start_date + timedelta(days=14 * steps)
    if frequency == "monthly":
        return _add_months(start_date, steps)
    raise InvalidConfiguration(f"Unsupported frequency: {frequency}")
