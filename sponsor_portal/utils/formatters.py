"""Date formatting for notifications and diagnostics output."""

from __future__ import annotations

from datetime import datetime, timezone

from sponsor_portal.models.portal import _as_utc


def parse_datetime(value) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    return _as_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


def format_date(value: datetime | None) -> str:
    """'Mar 5, 2025'"""
    value = _as_utc(value)
    if value is None:
        return ''
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def format_relative(value: datetime, now: datetime | None = None) -> str:
    now = _as_utc(now) or datetime.now(timezone.utc)
    delta = _as_utc(value) - now
    seconds = int(delta.total_seconds())
    future = seconds >= 0
    seconds = abs(seconds)
    if seconds < 3600:
        amount, unit = max(1, seconds // 60), 'minute'
    elif seconds < 86400:
        amount, unit = seconds // 3600, 'hour'
    else:
        amount, unit = seconds // 86400, 'day'
    label = f"{amount} {unit}{'s' if amount != 1 else ''}"
    return f"in {label}" if future else f"{label} ago"


def format_expiration(end_date: datetime | None, now: datetime | None = None) -> str:
    if end_date is None:
        return 'No expiration'
    now = _as_utc(now) or datetime.now(timezone.utc)
    if _as_utc(end_date) < now:
        return 'Expired'
    return f"Expires {format_relative(end_date, now)}"
