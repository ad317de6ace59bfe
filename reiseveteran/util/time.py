from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow_iso() -> str:
    """Current UTC time as ISO-8601 string with Z."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def utcnow_iso_ms() -> str:
    """Current UTC time with millisecond precision, e.g. 2025-05-01T12:00:00.123Z.

    Same shape browsers produce with Date.toISOString(), so consent timestamps
    written by either client compare equal.
    """
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str | None) -> Optional[datetime]:
    s = (value or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None
