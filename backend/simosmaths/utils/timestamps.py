from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def to_datetime(value: Any) -> datetime | None:
    """Coerce unix seconds, ISO strings and naive datetimes to aware UTC datetimes."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
