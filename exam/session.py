"""Exam attempt lifecycle and anti-cheat accounting.

One ``ExamSession`` models a single attempt as seen by the candidate's client:

    not_started --begin--> in_progress --(time_up | too_many_violations | manual)--> finished

While in progress, ``in_leave_cycle`` is set between a visibility-hidden and
the following visibility-visible transition. Only hidden transitions count
toward ``leave_count``; window blur is recorded in ``blur_count`` for
diagnostics and never counts as a leave.

Every finish path funnels into ``_close`` under the lock: the first cause
wins, the countdown is cancelled exactly once and later calls return the
stored result. Sink calls happen after the lock is released, and any
acknowledgement carrying ``should_finish`` ends the attempt for violations.
Sink failures are logged and never stop the machine from finishing.
"""
from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from .countdown import Countdown, CountdownLike
from .events import DeliveryResult, EventSink, NullSink
from .models import ExamConfig, ExamResult, FinishReason, LeaveCounters, Phase, Question, QuestionType
from .question_pool import QuestionPoolError
from .scoring import is_passed, percent, score_answers
from .selection import select_questions

logger = logging.getLogger(__name__)

RETURN_NOTICE = "Return acknowledged. Leaving the exam page is recorded."


class ExamValidationError(ValueError):
    """Raised for invalid candidate input; no state is committed."""


class ExamStateError(RuntimeError):
    """Raised when an operation is not allowed in the current phase."""


class ExamSession:
    def __init__(
        self,
        pool: List[Question],
        config: Optional[ExamConfig] = None,
        *,
        sink: Optional[EventSink] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        countdown_factory: Callable[[Callable[[], None]], CountdownLike] = Countdown,
    ) -> None:
        self.config = config or ExamConfig()
        self._pool = list(pool)
        self._sink: EventSink = sink or NullSink()
        self._rng = rng or random.Random()
        self._clock = clock
        self._countdown_factory = countdown_factory
        self._countdown: Optional[CountdownLike] = None
        self._lock = threading.RLock()

        self.phase = Phase.NOT_STARTED
        self.session_id = ""
        self.candidate_name = ""
        self.selected_questions: List[Question] = []
        self.answers: Dict[str, Set[str]] = {}
        self.blur_count = 0
        self.hidden_count = 0
        self.leave_count = 0
        self.in_leave_cycle = False
        self.started_at_ms: Optional[int] = None
        self.time_remaining_sec = self.config.duration_sec
        self.finish_reason: Optional[FinishReason] = None
        self.result: Optional[ExamResult] = None
        self.notice: Optional[str] = None
        self.timer_cancellations = 0

    # -- lifecycle -----------------------------------------------------

    def begin(self, candidate_name: str, session_id: str) -> List[Question]:
        name = (candidate_name or "").strip()
        sid = (session_id or "").strip()
        if not name:
            raise ExamValidationError("Candidate name is required")
        if not sid:
            raise ExamValidationError("Session identifier is required")
        if not self._pool:
            raise QuestionPoolError("Question pool is empty")
        with self._lock:
            if self.phase is not Phase.NOT_STARTED:
                raise ExamStateError(f"Attempt already {self.phase.value}")
            self.selected_questions = select_questions(
                self._pool,
                self.config.questions_per_attempt,
                self.config.selection_strategy,
                self._rng,
            )
            self.session_id = sid
            self.candidate_name = name
            self.answers = {}
            self.blur_count = self.hidden_count = self.leave_count = 0
            self.in_leave_cycle = False
            self.started_at_ms = int(self._clock() * 1000)
            self.time_remaining_sec = self.config.duration_sec
            self.phase = Phase.IN_PROGRESS
            self._countdown = self._countdown_factory(self.tick)
            self._countdown.start()
            selected = list(self.selected_questions)
        self._report("start", {"candidate_name": name, "total": len(selected)})
        return selected

    def answer(self, question_id: str, option_ids: Iterable[str]) -> Set[str]:
        with self._lock:
            self._require_in_progress()
            question = self._question(question_id)
            chosen = set(option_ids)
            unknown = chosen - question.option_ids
            if unknown:
                raise ExamValidationError(f"Unknown option(s) {sorted(unknown)} for question {question_id}")
            if question.type is QuestionType.SINGLE and len(chosen) > 1:
                raise ExamValidationError(f"Question {question_id} accepts a single option")
            self.answers[question_id] = chosen
            return set(chosen)

    def toggle(self, question_id: str, option_id: str) -> Set[str]:
        with self._lock:
            self._require_in_progress()
            question = self._question(question_id)
            if question.type is QuestionType.SINGLE:
                return self.answer(question_id, [option_id])
            current = set(self.answers.get(question_id, set()))
            current.symmetric_difference_update({option_id})
            return self.answer(question_id, current)

    # -- visibility accounting -----------------------------------------

    def visibility_hidden(self) -> None:
        with self._lock:
            if self.phase is not Phase.IN_PROGRESS or self.in_leave_cycle:
                return
            self.in_leave_cycle = True
            self.hidden_count += 1
            self.leave_count += 1
            fields = self._counter_fields()
            closed = None
            if self.leave_count >= self.config.auto_finish_threshold:
                closed = self._close(FinishReason.TOO_MANY_VIOLATIONS)
        if closed is None:
            self._report("hidden", fields)
            return
        self._emit("hidden", fields)
        self._deliver(closed)

    def visibility_visible(self) -> None:
        with self._lock:
            if self.phase is not Phase.IN_PROGRESS or not self.in_leave_cycle:
                return
            self.in_leave_cycle = False
            self.notice = RETURN_NOTICE
            fields = self._counter_fields()
        self._report("visible", fields)

    def window_blur(self) -> None:
        with self._lock:
            if self.phase is not Phase.IN_PROGRESS:
                return
            self.blur_count += 1
            fields = self._counter_fields()
        self._report("blur", fields)

    def dismiss_notice(self) -> None:
        self.notice = None

    def apply_ack(self, ack: Optional[Mapping[str, Any]]) -> None:
        """Finish for violations when the registry says the threshold is crossed."""

        if not ack or ack.get("should_finish") is not True:
            return
        with self._lock:
            closed = self._close(FinishReason.TOO_MANY_VIOLATIONS) if self.phase is Phase.IN_PROGRESS else None
        self._deliver(closed)

    # -- finishing -----------------------------------------------------

    def tick(self, seconds: int = 1) -> None:
        with self._lock:
            if self.phase is not Phase.IN_PROGRESS:
                return
            self.time_remaining_sec = max(0, self.time_remaining_sec - seconds)
            closed = self._close(FinishReason.TIME_UP) if self.time_remaining_sec == 0 else None
        self._deliver(closed)

    def finish_manual(self, confirmed: bool = False) -> Optional[ExamResult]:
        if not confirmed:
            return None
        with self._lock:
            if self.phase is Phase.NOT_STARTED:
                raise ExamStateError("Attempt has not started")
            closed = self._close(FinishReason.MANUAL)
            result = self.result
        self._deliver(closed)
        return result

    def _close(self, reason: FinishReason) -> Optional[ExamResult]:
        """Freeze the attempt under the lock; only the first call returns the new result."""

        if self.phase is Phase.FINISHED:
            return None

        self.phase = Phase.FINISHED
        self.finish_reason = reason
        self.in_leave_cycle = False
        if self._countdown is not None and self._countdown.cancel():
            self.timer_cancellations += 1

        total = len(self.selected_questions)
        score = score_answers(self.selected_questions, self.answers)
        passed = is_passed(score, total, self.config.pass_rate, reason)
        self.result = ExamResult(
            session_id=self.session_id,
            candidate_name=self.candidate_name,
            score=score,
            total=total,
            percent=percent(score, total),
            passed=passed,
            finish_reason=reason,
            duration_sec=self._elapsed_sec(),
            counters=LeaveCounters(**self._counter_fields()),
            answers={qid: sorted(chosen) for qid, chosen in self.answers.items()},
            celebrate=passed and reason is FinishReason.MANUAL,
        )
        logger.info(
            "Attempt finished session=%s reason=%s score=%d/%d passed=%s",
            self.session_id,
            reason.value,
            score,
            total,
            passed,
        )
        return self.result

    def _deliver(self, result: Optional[ExamResult]) -> None:
        if result is None:
            return
        try:
            delivery = self._sink.submit(result)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Result submit failed for session %s: %s", result.session_id, exc)
            delivery = DeliveryResult.failed(str(exc))
        result.submitted = delivery.delivered

    # -- helpers -------------------------------------------------------

    def _emit(self, event_type: str, fields: Dict[str, Any]) -> DeliveryResult:
        try:
            return self._sink.emit(self.session_id, event_type, fields)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Event %s dropped for session %s: %s", event_type, self.session_id, exc)
            return DeliveryResult.failed(str(exc))

    def _report(self, event_type: str, fields: Dict[str, Any]) -> None:
        self.apply_ack(self._emit(event_type, fields).payload)

    def _counter_fields(self) -> Dict[str, int]:
        return {
            "blur_count": self.blur_count,
            "hidden_count": self.hidden_count,
            "leave_count": self.leave_count,
        }

    def _elapsed_sec(self) -> int:
        if self.started_at_ms is None:
            return 0
        elapsed = int(round(self._clock() - self.started_at_ms / 1000))
        return max(0, min(elapsed, self.config.duration_sec))

    def _question(self, question_id: str) -> Question:
        for question in self.selected_questions:
            if question.id == question_id:
                return question
        raise ExamValidationError(f"Question {question_id} is not part of this attempt")

    def _require_in_progress(self) -> None:
        if self.phase is not Phase.IN_PROGRESS:
            raise ExamStateError(f"Answers are frozen while {self.phase.value}")


__all__ = ["ExamSession", "ExamStateError", "ExamValidationError", "RETURN_NOTICE"]
