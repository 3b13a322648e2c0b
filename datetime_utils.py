"""UTC timestamps as stored in the database, config and snapshot files."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional


UTC = timezone.utc

# Fractions longer than microseconds are truncated; offsets may be "Z" or +HH:MM.
_RFC3339 = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:?\d{2})?$",
    re.IGNORECASE,
)


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_rfc3339(s: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp; unparseable input gives ``None``.

    Values without an offset are taken as UTC.
    """

    match = _RFC3339.match((s or "").strip())
    if match is None:
        return None
    frac = (match.group("frac") or "")[:6].ljust(6, "0")
    tz = match.group("tz") or "+00:00"
    if tz.upper() == "Z":
        tz = "+00:00"
    elif ":" not in tz:
        tz = f"{tz[:3]}:{tz[3:]}"
    try:
        parsed = datetime.fromisoformat(f"{match.group('base').replace(' ', 'T')}.{frac}{tz}")
    except ValueError:
        return None
    return parsed.astimezone(UTC)


def to_rfc3339_utc(dt: Optional[datetime]) -> Optional[str]:
    """Second precision, ``Z`` suffix."""

    value = ensure_utc(dt)
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def file_timestamp(dt: Optional[datetime] = None) -> str:
    """Filesystem-safe UTC timestamp with millisecond precision.

    ``2024-01-15T14:30:45.123Z`` becomes ``2024-01-15T14-30-45-123Z``; the
    fixed width keeps lexical order equal to chronological order.
    """

    value = ensure_utc(dt) or utc_now()
    return value.strftime("%Y-%m-%dT%H-%M-%S-") + f"{value.microsecond // 1000:03d}Z"


__all__ = [
    "UTC",
    "ensure_utc",
    "file_timestamp",
    "parse_rfc3339",
    "to_rfc3339_utc",
    "utc_now",
]
