"""Shared timestamp normalization helpers."""
from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any


def _format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def to_storage_timestamp(value: datetime) -> str:
    """Serialize a datetime as a full-precision UTC ISO string.

    Cache validity compares these strings for equality, so microseconds are kept.
    """
    return _format_datetime_utc(value)


def from_storage_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _file_created_datetime(stats: Any) -> datetime | None:
    for attr in ("st_birthtime",):
        value = getattr(stats, attr, None)
        if isinstance(value, (int, float)) and value > 0:
            return datetime.fromtimestamp(float(value), timezone.utc)
    ctime = getattr(stats, "st_ctime", None)
    if isinstance(ctime, (int, float)) and ctime > 0:
        return datetime.fromtimestamp(float(ctime), timezone.utc)
    return None


def file_timestamps(stats: os.stat_result) -> tuple[datetime, datetime]:
    """Return (created_at, modified_at) as UTC datetimes for a stat result."""
    modified_dt = datetime.fromtimestamp(stats.st_mtime_ns / 1_000_000_000, timezone.utc)
    created_dt = _file_created_datetime(stats) or modified_dt
    return created_dt, modified_dt
