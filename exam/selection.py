"""Question subset selection strategies."""
from __future__ import annotations

import random
from typing import List, Optional, Sequence

from .models import Question, SelectionStrategy


def _thirds(pool: Sequence[Question]) -> List[List[Question]]:
    size = len(pool) // 3
    return [list(pool[:size]), list(pool[size : 2 * size]), list(pool[2 * size :])]


def select_random(pool: Sequence[Question], count: int, rng: random.Random) -> List[Question]:
    take = min(count, len(pool))
    return rng.sample(list(pool), take)


def select_balanced(pool: Sequence[Question], count: int, rng: random.Random) -> List[Question]:
    """Draw evenly from three contiguous thirds of the pool, then shuffle.

    The remainder of ``count // 3`` goes to the last third. A third that is
    too small is topped up from the questions nobody drew.
    """

    take = min(count, len(pool))
    share = take // 3
    quotas = [share, share, take - 2 * share]

    picked: List[Question] = []
    for third, quota in zip(_thirds(pool), quotas):
        picked.extend(rng.sample(third, min(quota, len(third))))

    if len(picked) < take:
        chosen = {question.id for question in picked}
        leftovers = [question for question in pool if question.id not in chosen]
        picked.extend(rng.sample(leftovers, take - len(picked)))

    rng.shuffle(picked)
    return picked


def select_questions(
    pool: Sequence[Question],
    count: int,
    strategy: SelectionStrategy = "random",
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Return ``min(count, len(pool))`` distinct questions in shuffled order."""

    rng = rng or random.Random()
    if strategy == "balanced":
        return select_balanced(pool, count, rng)
    return select_random(pool, count, rng)


__all__ = ["select_balanced", "select_questions", "select_random"]
