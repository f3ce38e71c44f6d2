from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today(tz_name: Optional[str] = None) -> date:
    """
    Business "today".

    tz_name is an IANA zone such as "America/Argentina/Buenos_Aires"; without
    one the server's local calendar day is used.
    """
    if tz_name:
        return datetime.now(ZoneInfo(tz_name)).date()
    return datetime.now().date()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a strict 'YYYY-MM-DD' business date.

    - None / "" -> None
    - anything else that is not a real calendar day raises ValueError
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    if not ISO_DATE_RE.match(s):
        raise ValueError(f"Invalid ISO date: {value!r}")
    return date.fromisoformat(s)


def to_iso_date(d: Optional[date]) -> Optional[str]:
    if d is None:
        return None
    return d.isoformat()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
