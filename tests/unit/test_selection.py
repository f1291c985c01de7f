import random

from conftest import make_question
from exam.selection import select_balanced, select_questions


def _pool(size: int):
    return [make_question(f"q{index:02d}") for index in range(size)]


def test_balanced_thirty_to_fifteen_is_unique():
    picked = select_questions(_pool(30), 15, "balanced", random.Random(7))
    ids = [question.id for question in picked]
    assert len(ids) == 15
    assert len(set(ids)) == 15


def test_balanced_draws_evenly_from_each_third():
    pool = _pool(30)
    picked = select_balanced(pool, 15, random.Random(3))
    thirds = [0, 0, 0]
    for question in picked:
        thirds[int(question.id[1:]) // 10] += 1
    assert thirds == [5, 5, 5]


def test_balanced_remainder_goes_to_last_third():
    pool = _pool(30)
    picked = select_balanced(pool, 14, random.Random(11))
    thirds = [0, 0, 0]
    for question in picked:
        thirds[int(question.id[1:]) // 10] += 1
    assert thirds == [4, 4, 6]


def test_balanced_result_is_shuffled_across_thirds():
    pool = _pool(30)
    orders = {
        tuple(question.id for question in select_balanced(pool, 15, random.Random(seed)))
        for seed in range(5)
    }
    assert len(orders) > 1
    for order in orders:
        assert list(order) != sorted(order)


def test_small_pool_is_taken_whole():
    pool = _pool(4)
    for strategy in ("random", "balanced"):
        picked = select_questions(pool, 15, strategy, random.Random(1))
        assert sorted(question.id for question in picked) == sorted(question.id for question in pool)


def test_balanced_tops_up_when_a_third_is_short():
    pool = _pool(6)
    picked = select_balanced(pool, 5, random.Random(2))
    assert len(picked) == 5
    assert len({question.id for question in picked}) == 5


def test_random_selection_size_and_uniqueness():
    picked = select_questions(_pool(30), 10, "random", random.Random(5))
    assert len(picked) == 10
    assert len({question.id for question in picked}) == 10
