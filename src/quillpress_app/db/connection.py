#!filepath: src/quillpress_app/db/connection.py
from __future__ import annotations

import itertools
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from quillpress_app.utils.logger import get_logger

logger = get_logger(__name__)

_savepoint_ids = itertools.count(1)


def open_connection(
    path: Union[Path, str], timeout_seconds: int = 30
) -> sqlite3.Connection:
    """Open a connection in autocommit mode with foreign keys enforced.

    Transactions are opened explicitly through :func:`transaction`.

    Args:
        path: Database file path or ``:memory:``.
        timeout_seconds: Busy timeout in seconds.

    Returns:
        sqlite3.Connection: Connection instance.
    """
    target = str(path)
    if target != ":memory:":
        p = Path(target).expanduser().resolve()
        p.parent.mkdir(parents=True, exist_ok=True)
        target = str(p)
    conn = sqlite3.connect(target, timeout=timeout_seconds, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute(f"PRAGMA busy_timeout = {int(timeout_seconds) * 1000};")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run a block atomically.

    Opens ``BEGIN IMMEDIATE`` at the outermost level and a savepoint when a
    transaction is already open, so services can compose. Any exception
    rolls the block back and propagates.

    Args:
        conn: Connection opened by :func:`open_connection`.

    Yields:
        sqlite3.Connection: The same connection.
    """
    if conn.in_transaction:
        name = f"sp_{next(_savepoint_ids)}"
        conn.execute(f"SAVEPOINT {name};")
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
            conn.execute(f"RELEASE SAVEPOINT {name};")
            raise
        conn.execute(f"RELEASE SAVEPOINT {name};")
        return

    conn.execute("BEGIN IMMEDIATE;")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK;")
        logger.debug("Transaction rolled back")
        raise
    conn.execute("COMMIT;")

