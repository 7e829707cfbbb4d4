"""Calendar-date helpers for schedule validation."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pendulum

from ..errors import ValidationError


def to_instant(value: Any, tz: str = "UTC") -> pendulum.DateTime:
    """Coerce a datetime, date or ISO-8601 string into an aware instant.

    Naive values are interpreted in ``tz``.
    """
    if isinstance(value, datetime):
        return pendulum.instance(value, tz=tz)
    if isinstance(value, date):
        return pendulum.datetime(value.year, value.month, value.day, tz=tz)
    if isinstance(value, str) and value.strip():
        try:
            parsed = pendulum.parse(value.strip(), tz=tz)
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {value!r}", value=value) from exc
        if isinstance(parsed, pendulum.DateTime):
            return parsed
        if isinstance(parsed, pendulum.Date):
            return pendulum.datetime(parsed.year, parsed.month, parsed.day, tz=tz)
    raise ValidationError(f"Invalid date: {value!r}", value=value)


def date_only(value: Any, tz: str = "UTC") -> pendulum.Date:
    """Return the calendar date of ``value`` as seen in ``tz``."""
    return to_instant(value, tz).in_timezone(tz).date()


def earliest_schedule_date(now: Any, tz: str = "UTC", *, min_days: int = 1) -> pendulum.Date:
    return date_only(now, tz).add(days=min_days)


def ensure_min_days_ahead(
    value: Any,
    *,
    now: Any,
    tz: str = "UTC",
    min_days: int = 1,
    label: str = "Date",
) -> pendulum.DateTime:
    instant = to_instant(value, tz)
    earliest = earliest_schedule_date(now, tz, min_days=min_days)
    if date_only(instant, tz) < earliest:
        raise ValidationError(
            f"{label} must be at least {min_days} day(s) in the future. "
            f"Please select a date starting from {earliest.to_date_string()}",
            earliest=earliest.to_date_string(),
        )
    return instant


__all__ = ["to_instant", "date_only", "earliest_schedule_date", "ensure_min_days_ahead"]
