"""
Usage calculator: planned rental window vs. actual date, in whole days.

No money here. Every date is reduced to a calendar date first, so the
arithmetic below is exact day counting (a ceil over whole days is the
plain difference).
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import date, timedelta

from rentflow.exceptions import InvalidDateError
from rentflow.services.common import require_int
from rentflow.utils.dates import as_date, days_between, fmt_date


@dataclass(frozen=True)
class UsageResult:
    planned_start: date
    planned_end: date
    actual_date: date
    grace_days: int
    return_allowance_date: date
    planned_days: int
    actual_days: int
    is_early_return: bool
    is_late_return: bool
    is_within_grace: bool
    extra_days: int

    @property
    def classification(self) -> str:
        if self.is_early_return:
            return "early"
        if self.is_late_return:
            return "late"
        if self.actual_date == self.planned_end:
            return "on_time"
        return "within_grace"

    def to_dict(self) -> dict:
        d = asdict(self)
        for k in ("planned_start", "planned_end", "actual_date", "return_allowance_date"):
            d[k] = fmt_date(d[k])
        d["classification"] = self.classification
        return d


def inclusive_days(start: date, end: date) -> int:
    """Days from start to end counting both endpoints (same day -> 1)."""
    return days_between(start, end) + 1


def compute_usage(planned_start, planned_end, actual_date, grace_days: int = 1, tz=None) -> UsageResult:
    """
    Classify ``actual_date`` against the planned window.

    Early: before the planned end. Late: after planned end + grace.
    Anything else (including the planned end itself) is within grace.
    ``extra_days`` counts days past the grace boundary and is 0 unless late.
    """
    start = as_date(planned_start, "planned start date", tz)
    end = as_date(planned_end, "planned end date", tz)
    actual = as_date(actual_date, "actual date", tz)
    grace = require_int(grace_days, "grace days", minimum=0)

    if end < start:
        raise InvalidDateError(
            f"Error: planned end date {end.isoformat()} is before start date {start.isoformat()}"
        )

    allowance = end + timedelta(days=grace)
    planned_days = inclusive_days(start, end)
    actual_days = max(0, inclusive_days(start, actual))

    is_early = actual < end
    is_late = actual > allowance
    is_within_grace = not is_early and actual <= allowance
    extra_days = days_between(allowance, actual) if is_late else 0

    return UsageResult(
        planned_start=start,
        planned_end=end,
        actual_date=actual,
        grace_days=grace,
        return_allowance_date=allowance,
        planned_days=planned_days,
        actual_days=actual_days,
        is_early_return=is_early,
        is_late_return=is_late,
        is_within_grace=is_within_grace,
        extra_days=extra_days,
    )


def days_overdue(planned_end, as_of, grace_days: int = 1, tz=None) -> int:
    """Days past the grace boundary as of a date; 0 when not overdue."""
    end = as_date(planned_end, "planned end date", tz)
    today = as_date(as_of, "as-of date", tz)
    grace = require_int(grace_days, "grace days", minimum=0)
    return max(0, days_between(end + timedelta(days=grace), today))
