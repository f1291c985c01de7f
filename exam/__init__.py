"""Exam attempt domain: questions, selection, scoring and the session lifecycle."""
from .events import DeliveryResult, EventSink, NullSink
from .models import ExamConfig, ExamResult, FinishReason, LeaveCounters, Option, Phase, Question, QuestionType
from .question_pool import QuestionPoolError, load_questions, parse_questions
from .scoring import is_correct, is_passed, percent, score_answers
from .selection import select_questions
from .session import ExamSession, ExamStateError, ExamValidationError

__all__ = [
    "DeliveryResult",
    "EventSink",
    "ExamConfig",
    "ExamResult",
    "ExamSession",
    "ExamStateError",
    "ExamValidationError",
    "FinishReason",
    "LeaveCounters",
    "NullSink",
    "Option",
    "Phase",
    "Question",
    "QuestionPoolError",
    "QuestionType",
    "is_correct",
    "is_passed",
    "load_questions",
    "parse_questions",
    "percent",
    "score_answers",
    "select_questions",
]
