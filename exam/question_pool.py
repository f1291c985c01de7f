"""Question pool loading and validation."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Sequence

from pydantic import ValidationError

from .models import Question

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


class QuestionPoolError(ValueError):
    """Raised when the question pool is empty or contains malformed records."""


def parse_questions(records: Iterable[Any]) -> List[Question]:
    """Validate raw question records and return an immutable-record list.

    Raises:
        QuestionPoolError: If a record is malformed, ids repeat or the pool
            is empty.
    """

    pool: List[Question] = []
    seen: set[str] = set()
    for index, raw in enumerate(records):
        try:
            question = Question.model_validate(raw)
        except ValidationError as exc:
            raise QuestionPoolError(f"Malformed question record at index {index}: {exc}") from exc
        if question.id in seen:
            raise QuestionPoolError(f"Duplicate question id '{question.id}'")
        seen.add(question.id)
        pool.append(question)
    if not pool:
        raise QuestionPoolError("Question pool is empty")
    return pool


def _read_yaml(path: Path) -> Any:
    import yaml  # local import; only needed for YAML question banks

    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise QuestionPoolError(f"Question file is not valid YAML: {path}") from exc


def load_questions(path: Path) -> List[Question]:
    """Load a question pool from JSON or YAML (a list or ``{"questions": [...]}``)."""

    try:
        if path.suffix.lower() in YAML_SUFFIXES:
            data = _read_yaml(path)
        else:
            data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise QuestionPoolError(f"Question file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise QuestionPoolError(f"Question file is not valid JSON: {path}") from exc
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        raise QuestionPoolError("Question file must contain a list of questions")
    pool = parse_questions(data)
    logger.info("Loaded %d questions from %s", len(pool), path)
    return pool


def public_pool(pool: Sequence[Question]) -> List[dict]:
    return [question.public_view() for question in pool]


__all__ = ["QuestionPoolError", "load_questions", "parse_questions", "public_pool"]
