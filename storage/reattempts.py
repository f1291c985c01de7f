"""Persistence helpers for re-attempt requests."""
from __future__ import annotations

import datetime as dt
from typing import Any, List

from pydantic import BaseModel, Field

from exam.models import FinishReason

from .sqlite import get_conn


class ReattemptPayload(BaseModel):
    session_id: str
    candidate_name: str
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    finish_reason: FinishReason


def insert_reattempt_request(**data: Any) -> int:
    """Insert a re-attempt request row and return its primary key."""

    payload = ReattemptPayload(**data)
    ts = int(dt.datetime.now(dt.timezone.utc).timestamp() * 1000)
    with get_conn() as conn:
        cur = conn.cursor()
        cur.execute(
            """INSERT INTO reattempt_requests
               (ts, session_id, candidate_name, score, total, finish_reason)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                ts,
                payload.session_id,
                payload.candidate_name,
                payload.score,
                payload.total,
                payload.finish_reason.value,
            ),
        )
        return int(cur.lastrowid)


class ReattemptRecord(ReattemptPayload):
    id: int
    ts: int


def list_reattempt_requests(limit: int = 20) -> List[ReattemptRecord]:
    """Return the newest re-attempt requests first."""

    with get_conn(rows=True) as conn:
        rows = conn.execute(
            "SELECT id, ts, session_id, candidate_name, score, total, finish_reason "
            "FROM reattempt_requests ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [ReattemptRecord(**dict(row)) for row in rows]


def count_reattempt_requests(session_id: str) -> int:
    with get_conn() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM reattempt_requests WHERE session_id = ?",
            (session_id,),
        ).fetchone()
    return int(row[0])


__all__ = [
    "ReattemptPayload",
    "ReattemptRecord",
    "count_reattempt_requests",
    "insert_reattempt_request",
    "list_reattempt_requests",
]
