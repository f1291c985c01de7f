import random
import sqlite3

import pytest

from conftest import FakeClock, make_question
from exam.models import ExamConfig, FinishReason, LeaveCounters, Phase
from exam.session import ExamSession
from services.registry import (
    ReattemptRejected,
    RegistrySink,
    ResultSubmission,
    SessionNotFound,
)
from storage.reattempts import count_reattempt_requests
from storage.results import list_results


def _submission(**overrides) -> ResultSubmission:
    data = {
        "candidate_name": "Jane Doe",
        "score": 8,
        "total": 10,
        "finish_reason": "manual",
        "counters": {"blur_count": 1, "hidden_count": 1, "leave_count": 1},
        "duration_sec": 120,
    }
    data.update(overrides)
    return ResultSubmission(**data)


def test_issue_session_is_unique_and_zeroed(registry):
    ids = {registry.issue_session() for _ in range(50)}
    assert len(ids) == 50
    record = registry.get(next(iter(ids)))
    assert (record.blur_count, record.hidden_count, record.leave_count) == (0, 0, 0)
    assert record.finished_at is None


def test_unknown_session_signals_not_found(registry):
    with pytest.raises(SessionNotFound):
        registry.record_event("nope", "hidden", {})
    with pytest.raises(SessionNotFound):
        registry.submit_result("nope", _submission())


def test_start_event_records_name_and_notifies_once(registry, tg_client):
    sid = registry.issue_session()
    registry.record_event(sid, "start", {"candidate_name": "Jane Doe"})
    registry.record_event(sid, "start", {"candidate_name": "Jane Doe"})
    record = registry.get(sid)
    assert record.candidate_name == "Jane Doe"
    assert record.started_at is not None
    assert len([text for text in tg_client.messages() if "started" in text]) == 1


def test_counters_are_monotonic_and_validated(registry):
    sid = registry.issue_session()
    registry.record_event(sid, "hidden", {"hidden_count": 2, "leave_count": 2})
    registry.record_event(sid, "hidden", {"hidden_count": 1, "leave_count": "9", "blur_count": -4})
    record = registry.get(sid)
    assert (record.hidden_count, record.leave_count, record.blur_count) == (2, 2, 0)


def test_bare_hidden_ping_counts_one_leave(registry):
    sid = registry.issue_session()
    registry.record_event(sid, "hidden")
    registry.record_event(sid, "blur")
    record = registry.get(sid)
    assert (record.hidden_count, record.leave_count, record.blur_count) == (1, 1, 1)


def test_threshold_sets_should_finish_and_notifies_once(registry, tg_client):
    sid = registry.issue_session()
    assert not registry.record_event(sid, "hidden", {"leave_count": 2}).should_finish
    ack = registry.record_event(sid, "hidden", {"leave_count": 3})
    assert ack.acknowledged and ack.should_finish
    registry.record_event(sid, "visible", {"leave_count": 3})
    assert len([text for text in tg_client.messages() if "left the exam page" in text]) == 1


def test_submit_is_idempotent(registry, tg_client):
    sid = registry.issue_session()
    first = registry.submit_result(sid, _submission())
    second = registry.submit_result(sid, _submission())
    assert first.accepted and second.accepted
    assert second.duplicate
    assert first.result_id == second.result_id
    assert len(list_results()) == 1
    assert len([text for text in tg_client.messages() if "🏁" in text]) == 1


def test_submit_computes_pass_and_violation_fail(registry):
    passing = registry.issue_session()
    assert registry.submit_result(passing, _submission(score=7)).passed
    failing = registry.issue_session()
    assert not registry.submit_result(failing, _submission(score=6)).passed
    cheated = registry.issue_session()
    outcome = registry.submit_result(cheated, _submission(score=10, finish_reason="too_many_violations"))
    assert not outcome.passed
    record = registry.get(cheated)
    assert record.finished_at is not None
    assert record.finish_reason is FinishReason.TOO_MANY_VIOLATIONS


def test_submission_rejects_score_above_total():
    with pytest.raises(ValueError):
        _submission(score=11)


def test_notification_failures_do_not_propagate(registry, tg_client):
    tg_client.fail = True
    sid = registry.issue_session()
    registry.record_event(sid, "start", {"candidate_name": "Jane"})
    assert registry.submit_result(sid, _submission()).accepted


def test_reattempt_rules(registry):
    sid = registry.issue_session()
    with pytest.raises(ReattemptRejected):
        registry.request_reattempt(sid, "Jane")

    registry.submit_result(sid, _submission(score=2))
    assert registry.request_reattempt(sid, "Jane") is True
    assert count_reattempt_requests(sid) == 1

    passed = registry.issue_session()
    registry.submit_result(passed, _submission(score=9))
    with pytest.raises(ReattemptRejected):
        registry.request_reattempt(passed)

    cheated = registry.issue_session()
    registry.submit_result(cheated, _submission(score=1, finish_reason="too_many_violations"))
    with pytest.raises(ReattemptRejected):
        registry.request_reattempt(cheated)

    with pytest.raises(SessionNotFound):
        registry.request_reattempt("missing")


def test_delete_session_removes_record_and_results(registry, tmp_db):
    sid = registry.issue_session()
    registry.submit_result(sid, _submission())
    assert registry.delete_session(sid) is True
    with pytest.raises(SessionNotFound):
        registry.get(sid)
    with sqlite3.connect(tmp_db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM exam_results").fetchone()[0] == 0
    assert registry.delete_session(sid) is False


def test_list_recent_orders_newest_first(registry, clock):
    first = registry.issue_session()
    clock.advance(1)
    second = registry.issue_session()
    assert [record.session_id for record in registry.list_recent(5)] == [second, first]
    assert len(registry.list_recent(1)) == 1


def test_exam_session_drives_registry_end_to_end(registry):
    pool = [make_question(f"q{i}") for i in range(6)]
    session = ExamSession(
        pool,
        ExamConfig(questions_per_attempt=6),
        sink=RegistrySink(registry),
        rng=random.Random(1),
        clock=FakeClock(),
        countdown_factory=lambda on_tick: _NoTimer(),
    )
    sid = registry.issue_session()
    session.begin("Jane Doe", sid)
    for question in session.selected_questions:
        session.answer(question.id, question.correct_ids)
    for _ in range(3):
        session.visibility_hidden()
        session.visibility_visible()

    assert session.phase is Phase.FINISHED
    assert session.result.submitted is True
    record = registry.get(sid)
    assert record.finish_reason is FinishReason.TOO_MANY_VIOLATIONS
    assert record.passed is False
    assert record.leave_count == 3
    assert LeaveCounters(**session.result.counters.model_dump()).leave_count == 3


class _NoTimer:
    def start(self) -> None:
        pass

    def cancel(self) -> bool:
        return True


def test_submit_after_server_threshold_is_recorded_as_violation(registry):
    sid = registry.issue_session()
    for leaves in (1, 2, 3):
        registry.record_event(sid, "hidden", {"hidden_count": leaves, "leave_count": leaves})

    outcome = registry.submit_result(sid, _submission(score=10, counters={}))

    assert outcome.accepted and not outcome.passed
    record = registry.get(sid)
    assert record.finish_reason is FinishReason.TOO_MANY_VIOLATIONS
    assert record.leave_count == 3
    (row,) = list_results()
    assert row.finish_reason is FinishReason.TOO_MANY_VIOLATIONS
    assert row.passed is False
    assert row.leave_count == 3


def test_submitted_leave_count_at_threshold_forces_violation(registry):
    sid = registry.issue_session()
    outcome = registry.submit_result(
        sid, _submission(score=10, counters={"blur_count": 0, "hidden_count": 3, "leave_count": 3})
    )
    assert not outcome.passed
    assert registry.get(sid).finish_reason is FinishReason.TOO_MANY_VIOLATIONS


def test_submit_without_counters_keeps_stored_counters(registry):
    sid = registry.issue_session()
    registry.record_event(sid, "hidden", {"hidden_count": 2, "leave_count": 2})
    registry.record_event(sid, "blur", {"blur_count": 1})

    outcome = registry.submit_result(sid, _submission(counters={}))

    assert outcome.passed
    record = registry.get(sid)
    assert (record.blur_count, record.hidden_count, record.leave_count) == (1, 2, 2)
    assert record.finish_reason is FinishReason.MANUAL
    (row,) = list_results()
    assert (row.blur_count, row.hidden_count, row.leave_count) == (1, 2, 2)


def test_unknown_ids_do_not_allocate_locks(registry):
    for index in range(1000):
        with pytest.raises(SessionNotFound):
            registry.record_event(f"bogus-{index}", "hidden", {})
    with pytest.raises(SessionNotFound):
        registry.submit_result("bogus", _submission())
    assert len(registry._locks) == 0


def test_expired_sessions_release_their_locks(registry, clock):
    sid = registry.issue_session()
    registry.record_event(sid, "start", {"candidate_name": "Jane"})
    assert sid in registry._locks

    clock.advance(3601)
    with pytest.raises(SessionNotFound):
        registry.record_event(sid, "hidden", {})
    assert len(registry._locks) == 0

    other = registry.issue_session()
    registry.record_event(other, "blur")
    clock.advance(3601)
    assert registry.list_recent() == []
    assert len(registry._locks) == 0
