"""Date and time helpers for calendar entries and roster spreadsheets.

Calendar entries carry their due instant either as an all-day ``date`` or as
a timezone-aware ``dateTime``. Reminder rules need two kinds of distance to
that instant:

- whole calendar days, counted on the team's local calendar (an entry due
  tomorrow at 23:00 is one day away for the whole of today);
- fractional hours, measured as elapsed time.
"""

from datetime import date, datetime, time, tzinfo
from typing import Optional, Union
from dateutil import parser as dateutil_parser
from dateutil import tz as dateutil_tz

from src.utils.logger import log_debug


DueInstant = Union[date, datetime]


def get_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name.

    Raises:
        ValueError: If the name is unknown
    """
    zone = dateutil_tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown timezone: {name}")
    return zone


def resolve_due_instant(
    date_time: Optional[str],
    all_day: Optional[str],
    zone: tzinfo
) -> Optional[DueInstant]:
    """Turn the start fields of a calendar entry into a due instant.

    Args:
        date_time: ISO 8601 datetime string (timed entries)
        all_day: YYYY-MM-DD string (all-day entries)
        zone: Timezone applied to naive datetimes

    Returns:
        A timezone-aware datetime, a date, or None if neither field parses
    """
    if date_time:
        try:
            parsed = dateutil_parser.isoparse(date_time)
        except (ValueError, OverflowError) as e:
            log_debug(f"Unparsable dateTime '{date_time}': {e}")
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=zone)
            return parsed

    if all_day:
        try:
            return date.fromisoformat(all_day[:10])
        except ValueError as e:
            log_debug(f"Unparsable date '{all_day}': {e}")

    return None


def _local_now(now: datetime, zone: tzinfo) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=zone)
    return now.astimezone(zone)


def _as_datetime(due: DueInstant, zone: tzinfo) -> datetime:
    if isinstance(due, datetime):
        return due
    return datetime.combine(due, time.min, tzinfo=zone)


def local_date(due: DueInstant, zone: tzinfo) -> date:
    """Calendar date of a due instant in the given timezone."""
    if isinstance(due, datetime):
        return due.astimezone(zone).date()
    return due


def days_until(due: DueInstant, now: datetime, zone: tzinfo) -> int:
    """Whole calendar days from ``now`` to ``due`` (negative once past)."""
    return (local_date(due, zone) - _local_now(now, zone).date()).days


def hours_until(due: DueInstant, now: datetime, zone: tzinfo) -> float:
    """Fractional hours from ``now`` to ``due``; all-day entries start at local midnight."""
    delta = _as_datetime(due, zone) - _local_now(now, zone)
    return delta.total_seconds() / 3600


def parse_date_value(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse a spreadsheet cell into a date.

    Supports native dates, ISO strings ("2001-03-14") and the free-form
    formats dateutil understands ("14 March 2001", "03/14/2001").

    Returns:
        The parsed date, or None if parsing fails
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass

    try:
        parsed = dateutil_parser.parse(text)
        log_debug(f"Parsed '{text}' as {parsed.date()}")
        return parsed.date()
    except (ValueError, OverflowError, TypeError) as e:
        log_debug(f"Failed to parse date '{text}': {e}")
        return None


def next_annual_occurrence(month_day: date, today: date) -> date:
    """Next date (today included) falling on the month and day of ``month_day``.

    February 29 falls back to February 28 in non-leap years.
    """
    candidate = _same_day_in_year(month_day, today.year)
    if candidate < today:
        candidate = _same_day_in_year(month_day, today.year + 1)
    return candidate


def _same_day_in_year(month_day: date, year: int) -> date:
    try:
        return month_day.replace(year=year)
    except ValueError:
        return date(year, 2, 28)


def format_long_date(due: DueInstant, zone: tzinfo) -> str:
    """Format as "March 5, 2026"."""
    day = local_date(due, zone)
    return f"{day.strftime('%B')} {day.day}, {day.year}"


def format_meeting_time(due: DueInstant, zone: tzinfo) -> str:
    """Format as "Thursday, March 5 at 10:00 AM"."""
    moment = _as_datetime(due, zone).astimezone(zone)
    clock = moment.strftime("%I:%M %p").lstrip("0")
    return f"{moment.strftime('%A, %B')} {moment.day} at {clock}"


def to_iso_format(dt: datetime) -> str:
    """Convert datetime to ISO 8601 format for calendar API (YYYY-MM-DDTHH:MM:SS)."""
    return dt.strftime("%Y-%m-%dT%H:%M:%S")
