#!filepath: src/quillpress_app/db/reset.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from quillpress_app.db.migrate import recreate_schema
from quillpress_app.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ResetResult:
    """Outcome of a destructive reset.

    Attributes:
        ok: Whether the reset completed.
        db_path: Resolved path.
        removed_file: Whether an existing file was deleted.
    """

    ok: bool
    db_path: Path
    removed_file: bool


def reset_database_file(db_path: Union[str, Path], timeout_seconds: int = 30) -> ResetResult:
    """Delete the SQLite file and recreate the schema."""
    p = Path(db_path).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)

    removed = False
    if p.exists():
        try:
            os.remove(p)
            removed = True
            logger.warning(f"Database file removed, path={p}")
        except OSError as e:
            logger.error(f"Failed to remove database, path={p}, err={e}")
            return ResetResult(ok=False, db_path=p, removed_file=False)

    conn = recreate_schema(p, timeout_seconds)
    conn.close()
    return ResetResult(ok=True, db_path=p, removed_file=removed)
