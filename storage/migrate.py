"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS exam_results (
  id TEXT PRIMARY KEY,
  ts INTEGER NOT NULL,
  date_iso TEXT NOT NULL,
  session_id TEXT NOT NULL,
  candidate_name TEXT NOT NULL,
  tg_id TEXT NOT NULL DEFAULT '',
  tg_username TEXT NOT NULL DEFAULT '',
  score INTEGER NOT NULL,
  total INTEGER NOT NULL,
  percent INTEGER NOT NULL,
  passed INTEGER NOT NULL,
  finish_reason TEXT NOT NULL,
  duration_sec INTEGER,
  blur_count INTEGER NOT NULL,
  hidden_count INTEGER NOT NULL,
  leave_count INTEGER NOT NULL,
  answers TEXT NOT NULL,
  meta TEXT NOT NULL
);
""",
    """
CREATE INDEX IF NOT EXISTS idx_exam_results_session ON exam_results(session_id);
""",
    """
CREATE TABLE IF NOT EXISTS reattempt_requests (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts INTEGER NOT NULL,
  session_id TEXT NOT NULL,
  candidate_name TEXT NOT NULL,
  score INTEGER NOT NULL,
  total INTEGER NOT NULL,
  finish_reason TEXT NOT NULL
);
""",
]


def migrate(db_path: str = "data/exam.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
