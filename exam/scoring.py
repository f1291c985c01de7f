"""Scoring helpers for exam attempts."""
from __future__ import annotations

import math
from typing import Iterable, Mapping, Optional, Sequence

from .models import FinishReason, Question, QuestionType


def is_correct(question: Question, selected: Optional[Iterable[str]]) -> bool:
    """Exact-set comparison; partial credit is never awarded."""

    chosen = frozenset(selected or ())
    if question.type is QuestionType.SINGLE:
        return len(chosen) == 1 and chosen == question.correct_ids
    return chosen == question.correct_ids


def score_answers(questions: Sequence[Question], answers: Mapping[str, Iterable[str]]) -> int:
    return sum(1 for question in questions if is_correct(question, answers.get(question.id)))


def percent(score: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(math.floor(score / total * 100 + 0.5))


def pass_mark(total: int, pass_rate: float) -> int:
    # 10 * 0.3 is 3.0000000000000004 in binary floating point.
    return math.ceil(round(total * pass_rate, 9))


def is_passed(score: int, total: int, pass_rate: float, finish_reason: Optional[FinishReason] = None) -> bool:
    if finish_reason == FinishReason.TOO_MANY_VIOLATIONS:
        return False
    return score >= pass_mark(total, pass_rate)


__all__ = ["is_correct", "is_passed", "pass_mark", "percent", "score_answers"]
