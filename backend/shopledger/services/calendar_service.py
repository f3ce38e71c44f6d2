# Overview: Business calendar: day, Sunday-aligned week and business-month boundaries.

"""
Business calendar

Business weeks run Sunday -> Saturday. A business month starts on the first
Sunday on or after the 1st of its calendar month and ends (exclusive) on the
first Sunday on or after the 1st of the following month.

Every period here is a half-open [start, end) range of dates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Iterator

from ..validation import ValidationError

SCOPE_DAY = "day"
SCOPE_WEEK = "week"
SCOPE_MONTH = "month"
SCOPE_ALL = "all"
PERIOD_SCOPES = (SCOPE_DAY, SCOPE_WEEK, SCOPE_MONTH)

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(days=7)


@dataclass(frozen=True)
class Period:
    start: date
    end: date  # exclusive

    def contains(self, d: date) -> bool:
        return self.start <= d < self.end


@dataclass
class WeekBlock:
    start: date  # Sunday
    end: date  # Saturday, inclusive for display
    days: list = field(default_factory=list)
    total_entries: Decimal = Decimal("0")
    total_exits: Decimal = Decimal("0")
    net_result: Decimal = Decimal("0")
    total_impacted: Decimal = Decimal("0")


def week_start(d: date) -> date:
    """Most recent Sunday at or before d."""
    # date.weekday(): Monday=0 .. Sunday=6; shift so Sunday=0
    return d - timedelta(days=(d.weekday() + 1) % 7)


def first_sunday_of_month(year: int, month: int) -> date:
    first = date(year, month, 1)
    return first + timedelta(days=(6 - first.weekday()) % 7)


def _next_month(year: int, month: int) -> tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def _previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def business_month(year: int, month: int) -> Period:
    next_year, next_month = _next_month(year, month)
    return Period(
        start=first_sunday_of_month(year, month),
        end=first_sunday_of_month(next_year, next_month),
    )


def bounds_for(scope: str, reference: date) -> Period:
    if scope == SCOPE_DAY:
        return Period(start=reference, end=reference + ONE_DAY)
    if scope == SCOPE_WEEK:
        start = week_start(reference)
        return Period(start=start, end=start + ONE_WEEK)
    if scope == SCOPE_MONTH:
        return business_month(reference.year, reference.month)
    raise ValidationError("SCOPE_INVALID", f"scope must be one of {', '.join(PERIOD_SCOPES)}")


def trailing_periods(mode: str, anchor: date, count: int) -> list[Period]:
    """
    The `count` consecutive periods ending with the one built from `anchor`,
    oldest first. Months are derived from calendar months, so consecutive
    business months always share a boundary.
    """
    if count < 1:
        return []

    if mode == SCOPE_WEEK:
        base = week_start(anchor)
        return [
            Period(start=base - ONE_WEEK * i, end=base - ONE_WEEK * (i - 1))
            for i in range(count - 1, -1, -1)
        ]

    if mode == SCOPE_MONTH:
        months = []
        year, month = anchor.year, anchor.month
        for _ in range(count):
            months.append(business_month(year, month))
            year, month = _previous_month(year, month)
        months.reverse()
        return months

    raise ValidationError("MODE_INVALID", "mode must be week or month")


def iter_days(period: Period) -> Iterator[date]:
    d = period.start
    while d < period.end:
        yield d
        d += ONE_DAY


def group_into_weeks(days: Iterable) -> list[WeekBlock]:
    """
    Bucket day summaries by the Sunday-aligned week containing them.

    Each element of `days` needs `date`, `total_entries`, `total_exits`,
    `net_result` and `total_impacted`. Days inside a block are ascending;
    blocks are returned most-recent-first.
    """
    blocks: dict[date, WeekBlock] = {}
    for day in sorted(days, key=lambda d: d.date):
        start = week_start(day.date)
        block = blocks.get(start)
        if block is None:
            block = WeekBlock(start=start, end=start + timedelta(days=6))
            blocks[start] = block
        block.days.append(day)
        block.total_entries += day.total_entries
        block.total_exits += day.total_exits
        block.net_result += day.net_result
        block.total_impacted += day.total_impacted

    return sorted(blocks.values(), key=lambda b: b.start, reverse=True)
