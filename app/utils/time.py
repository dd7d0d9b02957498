"""Time Utilities for UTC management and display formatting"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, Optional, Union
from zoneinfo import ZoneInfo

from app.config import settings

DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"
DATE_FORMAT = "%d/%m/%Y"
END_OF_DAY = time(23, 59, 59)

# Due dates carry calendar-day meaning; they are rendered in UTC so the day never shifts
CALENDAR_DAY_FIELDS = frozenset({"expire_date"})


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the DB schema (TIMESTAMP WITHOUT TIME ZONE).
    Avoids 'datetime.utcnow()' deprecation warnings.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Union[str, date, datetime]) -> datetime:
    """Accept ISO-8601 dates or datetimes (a trailing 'Z' included)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return datetime.combine(date.fromisoformat(text[:10]), time.min)


def end_of_day_utc(value: Union[str, date, datetime]) -> datetime:
    """
    Normalize a due date to the last second of its calendar day, in UTC.

    The calendar day is the one written in the input; an offset in the input
    does not move it to a neighbouring day.
    """
    parsed = parse_iso_datetime(value)
    return datetime.combine(parsed.date(), END_OF_DAY)


def business_now(now: Optional[datetime] = None) -> datetime:
    """Current instant in the business timezone (used for BILL-/INV- dates)."""
    current = now or get_utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(ZoneInfo(settings.BUSINESS_TIMEZONE))


def to_display(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(settings.DISPLAY_TIMEZONE))


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """DD/MM/YYYY HH:mm:ss in the display timezone."""
    if value is None:
        return None
    return to_display(value).strftime(DISPLAY_FORMAT)


def format_date(value: Optional[datetime]) -> Optional[str]:
    """DD/MM/YYYY of the stored (UTC) calendar day."""
    if value is None:
        return None
    return value.strftime(DATE_FORMAT)


def add_formatted_dates(record: Dict[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """Add ``<field>_formatted`` for each non-null date field."""
    for name in fields:
        value = record.get(name)
        if value is None:
            continue
        if name in CALENDAR_DAY_FIELDS:
            record[f"{name}_formatted"] = value.strftime(DISPLAY_FORMAT)
        else:
            record[f"{name}_formatted"] = format_datetime(value)
    return record
