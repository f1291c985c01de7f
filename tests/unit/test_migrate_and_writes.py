"""Tests for the SQLite migration and write helpers."""
from __future__ import annotations

import csv
import io
import json
import os
import sqlite3

import pytest

from storage.export import CSV_HEADERS, to_csv
from storage.migrate import migrate
from storage.reattempts import count_reattempt_requests, insert_reattempt_request, list_reattempt_requests
from storage.results import delete_results_for_session, insert_result, list_results, results_for_session


def _result(**overrides):
    data = dict(
        session_id="s1",
        candidate_name="Jane Doe",
        score=8,
        total=10,
        percent=80,
        passed=True,
        finish_reason="manual",
        duration_sec=95,
        blur_count=1,
        hidden_count=1,
        leave_count=1,
        answers={"q1": ["a"]},
        meta={"started_at": 1},
    )
    data.update(overrides)
    return insert_result(**data)


def test_migrate_is_idempotent(tmp_db: str):
    migrate(tmp_db)
    migrate(tmp_db)
    assert os.path.exists(tmp_db)


def test_insert_and_read_back(tmp_db: str):
    record = _result()
    assert record.id.startswith("res_")

    with sqlite3.connect(tmp_db) as conn:
        row = conn.execute(
            "SELECT candidate_name, passed, finish_reason, answers FROM exam_results WHERE id=?",
            (record.id,),
        ).fetchone()
    assert row == ("Jane Doe", 1, "manual", json.dumps({"q1": ["a"]}))

    loaded = results_for_session("s1")[0]
    assert loaded.passed is True
    assert loaded.answers == {"q1": ["a"]}


def test_list_results_filters(tmp_db: str):
    first = _result(session_id="s1", candidate_name="Alice Smith", tg_id="100")
    second = _result(session_id="s2", candidate_name="Bob Jones", tg_id="200")

    assert [r.id for r in list_results()] == [first.id, second.id]
    assert [r.id for r in list_results(candidate="alice")] == [first.id]
    assert [r.id for r in list_results(tg_id="200")] == [second.id]
    assert list_results(from_ts=second.ts + 1) == []
    assert [r.id for r in list_results(to_ts=first.ts, candidate="Alice")] == [first.id]
    assert [r.id for r in list_results(limit=1)] == [second.id]


def test_delete_results_for_session(tmp_db: str):
    _result(session_id="s1")
    _result(session_id="s2")
    assert delete_results_for_session("s1") == 1
    assert [r.session_id for r in list_results()] == ["s2"]


def test_reattempt_requests(tmp_db: str):
    row_id = insert_reattempt_request(
        session_id="s1", candidate_name="Jane", score=2, total=10, finish_reason="time_up"
    )
    assert row_id > 0
    assert count_reattempt_requests("s1") == 1
    assert count_reattempt_requests("other") == 0


def test_invalid_payloads_raise(tmp_db: str):
    with pytest.raises(Exception):
        _result(score=-1)
    with pytest.raises(Exception):
        _result(finish_reason="gave_up")
    with pytest.raises(Exception):
        insert_reattempt_request(session_id="s1", candidate_name="J", score="lots", total=1, finish_reason="manual")


def test_csv_export_escapes_and_orders_columns(tmp_db: str):
    _result(candidate_name='Doe, "Jane"', answers={"q1": ["a", "b"]})
    text = to_csv(list_results())
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == CSV_HEADERS
    row = dict(zip(rows[0], rows[1]))
    assert row["candidate_name"] == 'Doe, "Jane"'
    assert row["passed"] == "true"
    assert json.loads(row["answers_json"]) == {"q1": ["a", "b"]}


def test_csv_export_of_empty_log_has_header_only():
    assert to_csv([]).strip() == ",".join(CSV_HEADERS)


def test_list_reattempt_requests_newest_first(tmp_db: str):
    insert_reattempt_request(session_id="s1", candidate_name="A", score=1, total=10, finish_reason="manual")
    insert_reattempt_request(session_id="s2", candidate_name="B", score=2, total=10, finish_reason="time_up")
    requests = list_reattempt_requests(5)
    assert [request.session_id for request in requests] == ["s2", "s1"]
    assert requests[0].finish_reason.value == "time_up"
    assert len(list_reattempt_requests(1)) == 1
