import pytest

from conftest import make_question
from exam.models import FinishReason, QuestionType
from exam.scoring import is_correct, is_passed, pass_mark, percent, score_answers


def test_single_answer_requires_sole_correct_option():
    question = make_question("q1", correct=("b",))
    assert is_correct(question, {"b"})
    assert not is_correct(question, {"a"})
    assert not is_correct(question, set())
    assert not is_correct(question, None)


def test_multi_answer_requires_exact_set_in_any_order():
    question = make_question("q1", correct=("a", "c"), qtype=QuestionType.MULTI)
    assert is_correct(question, ["c", "a"])
    assert not is_correct(question, ["a"])
    assert not is_correct(question, ["a", "c", "d"])


def test_unanswered_counts_as_incorrect_and_score_is_bounded():
    questions = [make_question(f"q{i}") for i in range(5)]
    answers = {"q0": {"a"}, "q1": {"b"}, "q3": {"a"}}
    score = score_answers(questions, answers)
    assert score == 2
    assert 0 <= score <= len(questions)


@pytest.mark.parametrize(
    "score,expected",
    [(7, True), (6, False), (10, True), (0, False)],
)
def test_pass_boundary_at_seventy_percent(score, expected):
    assert is_passed(score, 10, 0.70) is expected


def test_violations_force_fail_regardless_of_score():
    assert not is_passed(10, 10, 0.70, FinishReason.TOO_MANY_VIOLATIONS)
    assert not is_passed(10, 10, 0.70, "too_many_violations")
    assert is_passed(10, 10, 0.70, FinishReason.TIME_UP)


def test_pass_mark_tolerates_float_error():
    assert pass_mark(10, 0.3) == 3
    assert pass_mark(3, 0.7) == 3
    assert pass_mark(15, 0.7) == 11


def test_percent_rounds_half_up_and_handles_zero_total():
    assert percent(2, 3) == 67
    assert percent(1, 8) == 13
    assert percent(0, 0) == 0
