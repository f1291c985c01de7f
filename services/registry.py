"""Server-side session registry: issuance, accounting events and result submission."""
from __future__ import annotations

import logging
import secrets
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

from exam.events import DeliveryResult
from exam.models import ExamConfig, ExamResult, FinishReason, LeaveCounters
from exam.scoring import is_passed, percent
from notify.relay import NotificationRelay
from observability.logger import log_event
from storage.reattempts import insert_reattempt_request
from storage.results import delete_results_for_session, insert_result

from .session_store import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("blur_count", "hidden_count", "leave_count")


class SessionNotFound(KeyError):
    """Raised when a session identifier is unknown or expired."""


class ReattemptRejected(RuntimeError):
    """Raised when a re-attempt is requested for an ineligible session."""


class TelegramUser(BaseModel):
    id: Optional[int | str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ResultSubmission(BaseModel):
    candidate_name: str = Field(min_length=1)
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    finish_reason: FinishReason
    counters: LeaveCounters = Field(default_factory=LeaveCounters)
    duration_sec: Optional[int] = Field(default=None, ge=0)
    answers: Dict[str, List[str]] = Field(default_factory=dict)
    tg: Optional[TelegramUser] = None

    @model_validator(mode="after")
    def _score_within_total(self) -> "ResultSubmission":
        if self.score > self.total:
            raise ValueError("score cannot exceed total")
        return self


class EventAck(BaseModel):
    acknowledged: bool
    should_finish: bool


class SubmitOutcome(BaseModel):
    accepted: bool
    passed: bool
    result_id: Optional[str] = None
    duplicate: bool = False


def _counter_value(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return None


class SessionRegistry:
    def __init__(
        self,
        store: SessionStore,
        *,
        config: Optional[ExamConfig] = None,
        relay: Optional[NotificationRelay] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.config = config or ExamConfig()
        self._relay = relay or NotificationRelay(None, "")
        self._clock = clock
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
        return lock

    def _load(self, session_id: str) -> SessionRecord:
        record = self._store.get(session_id)
        if record is None:
            raise SessionNotFound(session_id)
        return record

    def _drop_lock(self, session_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(session_id, None)

    @contextmanager
    def _locked(self, session_id: str) -> Iterator[SessionRecord]:
        """Hold the per-session lock around a fresh read of a live record.

        Unknown ids raise before any lock is allocated; an expired record
        releases its lock entry.
        """

        try:
            self._load(session_id)
        except SessionNotFound:
            self._drop_lock(session_id)
            raise
        with self._lock_for(session_id):
            try:
                record = self._load(session_id)
            except SessionNotFound:
                self._drop_lock(session_id)
                raise
            yield record

    def _notify(self, send: Callable[[], DeliveryResult], session_id: str, kind: str) -> None:
        try:
            delivery = send()
        except Exception as exc:  # noqa: BLE001
            logger.error("Notification %s for %s raised: %s", kind, session_id, exc)
            return
        if not delivery.delivered:
            logger.info("Notification %s for %s not delivered: %s", kind, session_id, delivery.error)

    def issue_session(self) -> str:
        """Create a zeroed record under a fresh random identifier."""

        session_id = secrets.token_hex(16)
        now = self._now_ms()
        self._store.put(SessionRecord(session_id=session_id, created_at=now, updated_at=now))
        log_event("session_issued", session_id)
        return session_id

    def record_event(self, session_id: str, event_type: str, fields: Optional[Mapping[str, Any]] = None) -> EventAck:
        """Apply an accounting event and report whether the client should finish.

        Counters only move forward: a reported value replaces the stored one
        when it is a non-negative integer larger than what is held. The first
        threshold crossing notifies the administrator once.

        Raises:
            SessionNotFound: If ``session_id`` is unknown or expired.
        """

        fields = fields or {}
        threshold = self.config.auto_finish_threshold
        with self._locked(session_id) as record:
            if record.finished:
                return EventAck(acknowledged=True, should_finish=record.leave_count >= threshold)

            reported = {name: _counter_value(fields.get(name)) for name in COUNTER_FIELDS}
            # Bare pings without counters still count one occurrence.
            if event_type == "hidden" and "leave_count" not in fields:
                reported["leave_count"] = record.leave_count + 1
                if "hidden_count" not in fields:
                    reported["hidden_count"] = record.hidden_count + 1
            if event_type == "blur" and "blur_count" not in fields:
                reported["blur_count"] = record.blur_count + 1
            for name, value in reported.items():
                if value is not None and value > getattr(record, name):
                    setattr(record, name, value)

            started = False
            if event_type == "start":
                candidate = str(fields.get("candidate_name") or "").strip()
                if candidate:
                    record.candidate_name = candidate
                if record.started_at is None:
                    record.started_at = self._now_ms()
                    started = True

            crossed = record.leave_count >= threshold and not record.threshold_notified
            if crossed:
                record.threshold_notified = True
            record.updated_at = self._now_ms()
            self._store.put(record)

        log_event("event", session_id, event=event_type, leave_count=record.leave_count)
        if started:
            self._notify(lambda: self._relay.session_started(record), session_id, "start")
        if crossed:
            self._notify(lambda: self._relay.threshold_crossed(record, threshold), session_id, "threshold")
        return EventAck(acknowledged=True, should_finish=record.leave_count >= threshold)

    def submit_result(self, session_id: str, submission: ResultSubmission) -> SubmitOutcome:
        """Finish the session once and append its result; repeats are acknowledged only.

        Raises:
            SessionNotFound: If ``session_id`` is unknown or expired.
        """

        with self._locked(session_id) as record:
            if record.finished:
                log_event("submit_duplicate", session_id)
                return SubmitOutcome(
                    accepted=True,
                    passed=bool(record.passed),
                    result_id=record.result_id,
                    duplicate=True,
                )

            # Counters merge upward; a crossing already seen here overrides the reported reason.
            counters = LeaveCounters(
                **{name: max(getattr(record, name), getattr(submission.counters, name)) for name in COUNTER_FIELDS}
            )
            reason = submission.finish_reason
            if counters.leave_count >= self.config.auto_finish_threshold or record.threshold_notified:
                reason = FinishReason.TOO_MANY_VIOLATIONS
            if reason is not submission.finish_reason:
                logger.warning(
                    "Session %s submitted as %s after %d leaves; recording %s",
                    session_id,
                    submission.finish_reason.value,
                    counters.leave_count,
                    reason.value,
                )

            passed = is_passed(submission.score, submission.total, self.config.pass_rate, reason)
            pct = percent(submission.score, submission.total)
            tg = submission.tg or TelegramUser()
            stored = insert_result(
                session_id=session_id,
                candidate_name=submission.candidate_name,
                tg_id="" if tg.id is None else str(tg.id),
                tg_username=tg.username or "",
                score=submission.score,
                total=submission.total,
                percent=pct,
                passed=passed,
                finish_reason=reason,
                duration_sec=submission.duration_sec,
                blur_count=counters.blur_count,
                hidden_count=counters.hidden_count,
                leave_count=counters.leave_count,
                answers=submission.answers,
                meta={"started_at": record.started_at, "reported_reason": submission.finish_reason.value},
            )

            now = self._now_ms()
            record.candidate_name = submission.candidate_name
            for name in COUNTER_FIELDS:
                setattr(record, name, getattr(counters, name))
            record.finished_at = now
            record.updated_at = now
            record.finish_reason = reason
            record.score = submission.score
            record.total = submission.total
            record.passed = passed
            record.result_id = stored.id
            self._store.put(record)

        log_event(
            "submit",
            session_id,
            candidate=record.candidate_name,
            score=record.score,
            total=record.total,
            passed=passed,
            reason=reason.value,
        )
        self._notify(lambda: self._relay.session_finished(record, pct), session_id, "finish")
        return SubmitOutcome(accepted=True, passed=passed, result_id=stored.id)

    def submit_exam_result(self, result: ExamResult) -> SubmitOutcome:
        return self.submit_result(
            result.session_id,
            ResultSubmission(
                candidate_name=result.candidate_name,
                score=result.score,
                total=result.total,
                finish_reason=result.finish_reason,
                counters=result.counters,
                duration_sec=result.duration_sec,
                answers=result.answers,
            ),
        )

    def request_reattempt(self, session_id: str, candidate_name: str = "") -> bool:
        """Log a re-attempt request for a finished, failed, non-violation session.

        Raises:
            SessionNotFound: If ``session_id`` is unknown or expired.
            ReattemptRejected: If the session is not eligible.
        """

        record = self._load(session_id)
        if not record.finished:
            raise ReattemptRejected("session is not finished")
        if record.passed:
            raise ReattemptRejected("session already passed")
        if record.finish_reason is FinishReason.TOO_MANY_VIOLATIONS:
            raise ReattemptRejected("session finished for violations")

        insert_reattempt_request(
            session_id=session_id,
            candidate_name=candidate_name.strip() or record.candidate_name,
            score=record.score or 0,
            total=record.total or 0,
            finish_reason=record.finish_reason or FinishReason.MANUAL,
        )
        log_event("reattempt", session_id, candidate=record.candidate_name)
        self._notify(lambda: self._relay.reattempt_requested(record), session_id, "reattempt")
        return True

    def get(self, session_id: str) -> SessionRecord:
        return self._load(session_id)

    def list_recent(self, limit: int = 10) -> List[SessionRecord]:
        records = self._store.list()
        self.prune_locks({record.session_id for record in records})
        return records[: max(0, limit)]

    def prune_locks(self, live_ids: Optional[set[str]] = None) -> int:
        """Forget locks of sessions the store no longer holds; returns how many were dropped."""

        if live_ids is None:
            live_ids = {record.session_id for record in self._store.list()}
        with self._locks_guard:
            stale = [session_id for session_id in self._locks if session_id not in live_ids]
            for session_id in stale:
                del self._locks[session_id]
        return len(stale)

    def delete_session(self, session_id: str) -> bool:
        """Drop the session and its result rows; returns whether anything existed."""

        existed = self._store.delete(session_id)
        removed = delete_results_for_session(session_id)
        self._drop_lock(session_id)
        log_event("session_deleted", session_id, status="deleted" if existed or removed else "missing")
        return existed or removed > 0


class RegistrySink:  # In-process event sink for an ExamSession
    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    def emit(self, session_id: str, event_type: str, fields: Dict[str, Any]) -> DeliveryResult:
        try:
            ack = self._registry.record_event(session_id, event_type, fields)
        except SessionNotFound:
            return DeliveryResult.failed("unknown session")
        return DeliveryResult.ok(ack.model_dump())

    def submit(self, result: ExamResult) -> DeliveryResult:
        try:
            outcome = self._registry.submit_exam_result(result)
        except SessionNotFound:
            return DeliveryResult.failed("unknown session")
        return DeliveryResult.ok(outcome.model_dump())


__all__ = [
    "EventAck",
    "ReattemptRejected",
    "RegistrySink",
    "ResultSubmission",
    "SessionNotFound",
    "SessionRegistry",
    "SubmitOutcome",
    "TelegramUser",
]
