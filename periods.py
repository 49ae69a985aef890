from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def resolve_period(
    start: Optional[str],
    end: Optional[str],
) -> Optional[Period]:
    """Build a date filter from query parameters.

    Both bounds must be given for the filter to apply; a single bound is
    ignored, matching how the listing and summary endpoints treat it.
    """
    if not start or not end:
        return None
    start_date = date.fromisoformat(start)
    end_date = date.fromisoformat(end)
    if start_date > end_date:
        raise ValueError("Start date must be before end date")
    return Period("custom", start_date, end_date)


def windows_overlap(
    a_start: date, a_end: date, b_start: date, b_end: date
) -> bool:
    return a_start <= b_end and b_start <= a_end


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def month_period(year: int, month: int) -> Period:
    first = date(year, month, 1)
    return Period(f"{year:04d}-{month:02d}", first, month_end(first))


def trailing_months(today: date, count: int = 6) -> list[Period]:
    """The last ``count`` calendar months ending with the month of ``today``, oldest first."""
    current = month_start(today)
    months: list[Period] = []
    for offset in range(count - 1, -1, -1):
        first = add_months(current, -offset)
        months.append(month_period(first.year, first.month))
    return months
