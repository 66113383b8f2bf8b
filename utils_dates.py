#!/usr/bin/env python3
"""
Shared date utilities for Linear issue analysis
Used by the issue model, timeline builder, calculators, and cache
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union

# ISO 8601 format for data exchange (CSV, JSON)
ISO_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

# Human-readable format for tables and reports
DISPLAY_FORMAT = '%Y-%m-%d'

DEFAULT_FALLBACK = 'N/A'

SECONDS_PER_DAY = 24 * 3600


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO format timestamp string from the Linear API.

    Args:
        value: ISO string like "2024-01-15T10:00:00.000Z", a datetime, or None

    Returns:
        Timezone-aware datetime (UTC when no offset is given), or None when
        the value is missing or malformed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Union[str, datetime, None]) -> Optional[date]:
    """Calendar date of a timestamp, or None"""
    parsed = parse_timestamp(value)
    return parsed.date() if parsed else None


def days_between(start: datetime, end: datetime) -> float:
    """Elapsed days between two datetimes as a float"""
    return (end - start).total_seconds() / SECONDS_PER_DAY


def calendar_days_between(start: Union[str, datetime], end: Union[str, datetime]) -> float:
    """Whole calendar days between the dates of two timestamps (0.0 if either is invalid)"""
    start_date = parse_date(start)
    end_date = parse_date(end)
    if start_date is None or end_date is None:
        return 0.0
    return float((end_date - start_date).days)


def end_of_day(moment: datetime) -> datetime:
    """23:59:59 on the calendar day of moment, in the same timezone"""
    return datetime.combine(moment.date(), time(23, 59, 59), tzinfo=moment.tzinfo)


def to_iso(timestamp: Optional[datetime], fallback: Optional[str] = None) -> Optional[str]:
    """Format timestamp for API/data exchange (ISO 8601, UTC)"""
    if timestamp is None:
        return fallback
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.strftime(ISO_FORMAT)


def to_display(timestamp: Optional[datetime], fallback: str = DEFAULT_FALLBACK) -> str:
    """Format timestamp for human-readable display"""
    if timestamp is None:
        return fallback
    return timestamp.strftime(DISPLAY_FORMAT)
