"""UTC time helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

BRANCH_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def utc_timestamp(dt: Optional[datetime] = None) -> str:
    """Return an ISO 8601 UTC timestamp with a ``Z`` suffix."""
    value = (dt or utc_now()).astimezone(timezone.utc)
    return value.isoformat(timespec="seconds").replace("+00:00", "Z")


def compact_timestamp(dt: Optional[datetime] = None) -> str:
    """Return the sortable ``YYYYMMDD-HHMMSS`` form used in branch names."""
    value = (dt or utc_now()).astimezone(timezone.utc)
    return value.strftime(BRANCH_TIMESTAMP_FORMAT)


__all__ = ["utc_now", "utc_timestamp", "compact_timestamp", "BRANCH_TIMESTAMP_FORMAT"]
