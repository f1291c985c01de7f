from __future__ import annotations  # Question, config and result types for exam attempts

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


class QuestionType(str, Enum):  # Answer cardinality
    SINGLE = "single"
    MULTI = "multi"


class Phase(str, Enum):  # Attempt lifecycle phase
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class FinishReason(str, Enum):  # Mutually exclusive finish causes
    MANUAL = "manual"
    TIME_UP = "time_up"
    TOO_MANY_VIOLATIONS = "too_many_violations"


SelectionStrategy = Literal["random", "balanced"]


class Option(BaseModel):  # Answer option
    id: str
    text: str
    is_correct: bool = False

    model_config = {"frozen": True}


class Question(BaseModel):  # Immutable question record
    id: str
    type: QuestionType = QuestionType.SINGLE
    text: str
    options: Tuple[Option, ...]

    model_config = {"frozen": True}

    @field_validator("id", "text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @model_validator(mode="after")
    def _check_options(self) -> "Question":
        if len(self.options) < 2:
            raise ValueError(f"question {self.id} needs at least two options")
        ids = [option.id for option in self.options]
        if len(set(ids)) != len(ids):
            raise ValueError(f"question {self.id} has duplicate option ids")
        correct = sum(1 for option in self.options if option.is_correct)
        if self.type is QuestionType.SINGLE and correct != 1:
            raise ValueError(f"single-answer question {self.id} must have exactly one correct option")
        if self.type is QuestionType.MULTI and correct < 1:
            raise ValueError(f"multi-answer question {self.id} must have a correct option")
        return self

    @property
    def correct_ids(self) -> frozenset[str]:
        return frozenset(option.id for option in self.options if option.is_correct)

    @property
    def option_ids(self) -> frozenset[str]:
        return frozenset(option.id for option in self.options)

    def public_view(self) -> Dict[str, object]:
        """Question payload without correctness flags."""
        return {
            "id": self.id,
            "type": self.type.value,
            "text": self.text,
            "options": [{"id": option.id, "text": option.text} for option in self.options],
        }


class ExamConfig(BaseModel):  # Per-attempt exam parameters
    duration_sec: int = Field(default=600, ge=1)
    questions_per_attempt: int = Field(default=15, ge=1)
    pass_rate: float = Field(default=0.70, ge=0.0, le=1.0)
    auto_finish_threshold: int = Field(default=3, ge=1)
    selection_strategy: SelectionStrategy = "random"


class LeaveCounters(BaseModel):  # Anti-cheat counters
    blur_count: int = Field(default=0, ge=0)
    hidden_count: int = Field(default=0, ge=0)
    leave_count: int = Field(default=0, ge=0)


class ExamResult(BaseModel):  # Locally computed outcome of a finished attempt
    session_id: str
    candidate_name: str
    score: int = Field(ge=0)
    total: int = Field(ge=0)
    percent: int
    passed: bool
    finish_reason: FinishReason
    duration_sec: int = Field(ge=0)
    counters: LeaveCounters
    answers: Dict[str, List[str]] = Field(default_factory=dict)
    celebrate: bool = False
    submitted: Optional[bool] = None


__all__ = [
    "ExamConfig",
    "ExamResult",
    "FinishReason",
    "LeaveCounters",
    "Option",
    "Phase",
    "Question",
    "QuestionType",
    "SelectionStrategy",
]
