"""Append-only result log."""
from __future__ import annotations

import datetime as dt
import json
import secrets
import sqlite3
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from exam.models import FinishReason

from .sqlite import get_conn


class ResultRecord(BaseModel):
    id: str
    ts: int
    date_iso: str
    session_id: str
    candidate_name: str
    tg_id: str = ""
    tg_username: str = ""
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    percent: int
    passed: bool
    finish_reason: FinishReason
    duration_sec: Optional[int] = None
    blur_count: int = 0
    hidden_count: int = 0
    leave_count: int = 0
    answers: Dict[str, Any] = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)


class ResultPayload(BaseModel):
    session_id: str
    candidate_name: str
    tg_id: str = ""
    tg_username: str = ""
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    percent: int
    passed: bool
    finish_reason: FinishReason
    duration_sec: Optional[int] = Field(default=None, ge=0)
    blur_count: int = Field(default=0, ge=0)
    hidden_count: int = Field(default=0, ge=0)
    leave_count: int = Field(default=0, ge=0)
    answers: Dict[str, Any] = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)


_COLUMNS = (
    "id, ts, date_iso, session_id, candidate_name, tg_id, tg_username, score, total, percent, "
    "passed, finish_reason, duration_sec, blur_count, hidden_count, leave_count, answers, meta"
)


def _row_to_record(row: sqlite3.Row) -> ResultRecord:
    data = dict(row)
    data["passed"] = bool(data["passed"])
    data["answers"] = json.loads(data["answers"] or "{}")
    data["meta"] = json.loads(data["meta"] or "{}")
    return ResultRecord(**data)


def insert_result(**data: Any) -> ResultRecord:
    """Append a result row and return the stored record."""

    payload = ResultPayload(**data)
    now = dt.datetime.now(dt.timezone.utc)
    record = ResultRecord(
        id="res_" + secrets.token_hex(8),
        ts=int(now.timestamp() * 1000),
        date_iso=now.isoformat(),
        **payload.model_dump(),
    )
    with get_conn() as conn:
        conn.execute(
            f"INSERT INTO exam_results ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.ts,
                record.date_iso,
                record.session_id,
                record.candidate_name,
                record.tg_id,
                record.tg_username,
                record.score,
                record.total,
                record.percent,
                int(record.passed),
                record.finish_reason.value,
                record.duration_sec,
                record.blur_count,
                record.hidden_count,
                record.leave_count,
                json.dumps(record.answers, ensure_ascii=False),
                json.dumps(record.meta, ensure_ascii=False),
            ),
        )
    return record


def list_results(
    *,
    from_ts: Optional[int] = None,
    to_ts: Optional[int] = None,
    candidate: Optional[str] = None,
    tg_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[ResultRecord]:
    """Return results in insertion order, optionally filtered by time range and candidate."""

    clauses: List[str] = []
    params: List[Any] = []
    if from_ts is not None:
        clauses.append("ts >= ?")
        params.append(from_ts)
    if to_ts is not None:
        clauses.append("ts <= ?")
        params.append(to_ts)
    if candidate:
        clauses.append("candidate_name LIKE ?")
        params.append(f"%{candidate}%")
    if tg_id:
        clauses.append("tg_id = ?")
        params.append(tg_id)
    sql = f"SELECT {_COLUMNS} FROM exam_results"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    if limit is None:
        sql += " ORDER BY ts ASC, rowid ASC"
    else:
        # Latest ``limit`` rows, flipped back to insertion order below.
        sql += " ORDER BY ts DESC, rowid DESC LIMIT ?"
        params.append(limit)
    with get_conn(rows=True) as conn:
        rows = conn.execute(sql, params).fetchall()
    if limit is not None:
        rows = list(reversed(rows))
    return [_row_to_record(row) for row in rows]


def results_for_session(session_id: str) -> List[ResultRecord]:
    with get_conn(rows=True) as conn:
        rows = conn.execute(
            f"SELECT {_COLUMNS} FROM exam_results WHERE session_id = ? ORDER BY ts ASC",
            (session_id,),
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def delete_results_for_session(session_id: str) -> int:
    """Admin-initiated deletion; the only path that removes rows."""

    with get_conn() as conn:
        cur = conn.execute("DELETE FROM exam_results WHERE session_id = ?", (session_id,))
        return int(cur.rowcount)


__all__ = [
    "ResultPayload",
    "ResultRecord",
    "delete_results_for_session",
    "insert_result",
    "list_results",
    "results_for_session",
]
