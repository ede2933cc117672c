"""Time parsing and day-boundary utilities.

Supports:
- ISO format: "2025-01-15", "2025-01-15T14:30:00"
- Relative: "7 days ago", "2 weeks ago", "1 month ago"
- Named: "today", "yesterday", "last week", "last month"

Day boundaries are always computed in an explicit timezone so that
"the same calendar day" means the same thing for every caller.
"""

import re
from datetime import date, datetime, timedelta, timezone, tzinfo

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from .errors import InvalidInput


def parse_time_reference(
    ref: str,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> datetime:
    """Parse human-friendly time references.

    Args:
        ref: Time reference string
        now: Reference point for relative times (default: current time)
        tz: Zone for named day references and naive ISO strings (default: UTC)

    Returns:
        Parsed timezone-aware datetime

    Raises:
        ValueError: If the reference cannot be parsed

    Examples:
        >>> parse_time_reference("2025-01-15")
        datetime(2025, 1, 15, 0, 0, tzinfo=timezone.utc)

        >>> parse_time_reference("yesterday")  # local midnight one day back
        datetime(...)
    """
    tz = tz or timezone.utc
    if now is None:
        now = datetime.now(tz)
    now = now.astimezone(tz)

    text = ref.strip()
    ref = text.lower()

    # Handle named references
    if ref == "today":
        return start_of_day(now, tz)
    if ref == "yesterday":
        return start_of_day(now, tz) - timedelta(days=1)
    if ref == "tomorrow":
        return start_of_day(now, tz) + timedelta(days=1)
    if ref == "last week":
        return now - timedelta(weeks=1)
    if ref == "last month":
        return now - relativedelta(months=1)
    if ref == "last year":
        return now - relativedelta(years=1)

    # Handle "N units ago" pattern
    ago_match = re.match(r"(\d+)\s*(second|minute|hour|day|week|month|year)s?\s*ago", ref)
    if ago_match:
        amount = int(ago_match.group(1))
        unit = ago_match.group(2)

        if unit == "second":
            return now - timedelta(seconds=amount)
        elif unit == "minute":
            return now - timedelta(minutes=amount)
        elif unit == "hour":
            return now - timedelta(hours=amount)
        elif unit == "day":
            return now - timedelta(days=amount)
        elif unit == "week":
            return now - timedelta(weeks=amount)
        elif unit == "month":
            return now - relativedelta(months=amount)
        elif unit == "year":
            return now - relativedelta(years=amount)

    # Fall back to dateutil parser for ISO and other formats
    try:
        parsed = dateparser.parse(text)
        if parsed is None:
            raise ValueError(f"Cannot parse time reference: {ref}")

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=tz)

        return parsed
    except (ValueError, OverflowError, dateparser.ParserError) as e:
        raise ValueError(f"Cannot parse time reference: {ref}") from e


def to_local(value: date | datetime | str, tz: tzinfo) -> datetime:
    """Coerce a date, datetime or time reference to an aware datetime in ``tz``.

    A plain ``date`` means local midnight. A naive ``datetime`` is read as
    local wall time.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        return value.astimezone(tz)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=tz)
    if isinstance(value, str):
        try:
            return parse_time_reference(value, tz=tz).astimezone(tz)
        except ValueError as e:
            raise InvalidInput(str(e)) from e
    raise InvalidInput(f"Expected a date, datetime or time reference, got {type(value).__name__}")


def start_of_day(value: date | datetime | str, tz: tzinfo) -> datetime:
    """Local midnight of the day containing ``value``."""
    local = to_local(value, tz)
    return datetime(local.year, local.month, local.day, tzinfo=tz)


def next_day(value: date | datetime | str, tz: tzinfo) -> datetime:
    """Local midnight of the day after the one containing ``value``."""
    return start_of_day(start_of_day(value, tz) + timedelta(days=1), tz)


def same_local_day(a: datetime, b: datetime, tz: tzinfo) -> bool:
    """True when both instants fall on the same calendar day in ``tz``."""
    return a.astimezone(tz).date() == b.astimezone(tz).date()


def to_utc_iso(value: datetime) -> str:
    """Fixed-width UTC ISO-8601 string; sorts lexicographically by instant."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def minutes_to_hours(minutes: int | float) -> str:
    """Format a minute count as "2h 5m", "45m" or "0m"."""
    total = int(minutes)
    hours, mins = divmod(total, 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime as a human-readable relative string.

    Args:
        dt: The datetime to format
        now: Reference point (default: utcnow)

    Returns:
        Human-readable string like "2 days ago", "3 weeks ago"
    """
    from .constants import (
        SECONDS_PER_MINUTE,
        SECONDS_PER_HOUR,
        SECONDS_PER_DAY,
        SECONDS_PER_WEEK,
        SECONDS_PER_MONTH,
        SECONDS_PER_YEAR,
    )

    if now is None:
        now = datetime.now(timezone.utc)

    diff = now - dt

    if diff.total_seconds() < 0:
        return "in the future"

    seconds = int(diff.total_seconds())

    if seconds < SECONDS_PER_MINUTE:
        return f"{seconds} seconds ago"
    elif seconds < SECONDS_PER_HOUR:
        minutes = seconds // SECONDS_PER_MINUTE
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    elif seconds < SECONDS_PER_DAY:
        hours = seconds // SECONDS_PER_HOUR
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    elif seconds < SECONDS_PER_WEEK:
        days = seconds // SECONDS_PER_DAY
        return f"{days} day{'s' if days != 1 else ''} ago"
    elif seconds < SECONDS_PER_MONTH:
        weeks = seconds // SECONDS_PER_WEEK
        return f"{weeks} week{'s' if weeks != 1 else ''} ago"
    elif seconds < SECONDS_PER_YEAR:
        months = seconds // SECONDS_PER_MONTH
        return f"{months} month{'s' if months != 1 else ''} ago"
    else:
        years = seconds // SECONDS_PER_YEAR
        return f"{years} year{'s' if years != 1 else ''} ago"
