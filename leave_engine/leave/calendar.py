"""Business-day arithmetic for leave ranges.

Saturday and Sunday are the only non-working days; public holidays are not
modelled.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Iterator

from leave_engine.common.constants import MONTH_FORMAT

_WEEKEND = (5, 6)  # date.weekday(): Saturday, Sunday


def is_business_day(day: date) -> bool:
    return day.weekday() not in _WEEKEND


def business_days(start: date, end: date) -> Iterator[date]:
    """Yield each non-weekend date in ``[start, end]``, ascending.

    Every call returns a fresh generator, so the sequence can be walked
    again by calling the function again. Yields nothing when ``start > end``.
    """
    day = start
    while day <= end:
        if is_business_day(day):
            yield day
        # Stepping past date.max overflows
        if day == end:
            break
        day += timedelta(days=1)


def business_day_count(start: date, end: date) -> int:
    """Number of business days in ``[start, end]``, never less than 1.

    A range made only of weekend days still books one day of leave.
    """
    return max(1, sum(1 for _ in business_days(start, end)))


def month_bounds(month_year: str) -> tuple[date, date]:
    """Parse ``YYYY-MM`` into the first and last calendar day of that month.

    Raises ``ValueError`` for anything else (``"2025-3"``, ``"2025-13"``,
    ``"2025-03-01"``).
    """
    if len(month_year) != 7:
        raise ValueError(f"Expected YYYY-MM, got {month_year!r}")
    first = datetime.strptime(month_year, MONTH_FORMAT).date()
    last_day = calendar.monthrange(first.year, first.month)[1]
    return first, first.replace(day=last_day)
