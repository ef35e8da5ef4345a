"""Date parsing and business-timezone normalization helpers."""
from datetime import datetime, date, timezone
from typing import Optional

import pytz

from rentflow.exceptions import InvalidDateError

DEFAULT_TZ = "Africa/Nairobi"


def _resolve_tz(tz):
    if tz is None:
        return pytz.timezone(DEFAULT_TZ)
    if isinstance(tz, str):
        try:
            return pytz.timezone(tz)
        except pytz.UnknownTimeZoneError:
            raise InvalidDateError(f"Error: unknown timezone {tz!r}") from None
    return tz


def _parse_datetime_str(s: str) -> datetime | date:
    """
    Parse the string forms the API accepts:
      - 'YYYY-MM-DD'
      - 'YYYY-MM-DD HH:MM[:SS]' / 'YYYY-MM-DDTHH:MM[:SS]'
      - Above with 'Z' or offsets like '+03:00'
    """
    s_norm = s.strip().replace("T", " ")
    if s_norm.endswith("Z"):
        s_norm = s_norm[:-1] + "+00:00"
    if " " not in s_norm:
        return date.fromisoformat(s_norm)
    return datetime.fromisoformat(s_norm)


def as_date(value, field: str = "date", tz=None) -> date:
    """
    Coerce a date-like value to a calendar date (start of day).

    Timezone-aware datetimes are first converted to the business timezone,
    so 2024-01-04T22:30Z counts as 2024-01-05 in Nairobi. Naive datetimes
    are taken as already local. Raises InvalidDateError on missing or
    unparseable input.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidDateError(f"Error: {field} is required")

    if isinstance(value, str):
        try:
            value = _parse_datetime_str(value)
        except ValueError:
            raise InvalidDateError(f"Error: {field} is not a valid date: {value!r}") from None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(_resolve_tz(tz))
        return value.date()
    if isinstance(value, date):
        return value

    raise InvalidDateError(f"Error: unsupported {field}: {value!r}")


def optional_date(value, field: str = "date", tz=None) -> Optional[date]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return as_date(value, field, tz)


def days_between(start: date, end: date) -> int:
    """Whole days from start to end; negative when end is before start."""
    return (end - start).days


def business_now(tz=None) -> datetime:
    """Current wall-clock time in the business timezone (timestamps only, never usage dates)."""
    return datetime.now(timezone.utc).astimezone(_resolve_tz(tz))


def fmt_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def fmt_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value is not None else None
