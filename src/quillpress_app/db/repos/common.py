#!filepath: src/quillpress_app/db/repos/common.py
from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="microseconds")


def utc_days_ago_iso(days: int) -> str:
    cutoff = datetime.now(tz=timezone.utc) - timedelta(days=int(days))
    return cutoff.isoformat(timespec="microseconds")


def scalar(row: Optional[sqlite3.Row], default: Any = 0) -> Any:
    """First column of a row, or ``default`` for a missing row or NULL."""
    if row is None:
        return default
    value = row[0]
    return default if value is None else value
