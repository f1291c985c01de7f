"""SQLite helpers for the persistence layer."""
from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from config.settings import settings


@contextmanager
def get_conn(*, rows: bool = False) -> Iterator[sqlite3.Connection]:
    """Yield a connection to ``settings.DB_PATH``; commit on success, always close.

    ``rows=True`` switches the row factory to ``sqlite3.Row``.
    """

    directory = os.path.dirname(settings.DB_PATH) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(settings.DB_PATH)
    if rows:
        conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()
