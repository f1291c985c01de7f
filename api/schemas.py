"""Pydantic schemas for the exam session API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from exam.events import EventType
from exam.models import FinishReason
from services.registry import ResultSubmission
from storage.results import ResultRecord


class SessionCreated(BaseModel):
    session_id: str


class EventReq(BaseModel):
    session_id: str = Field(min_length=1)
    event_type: EventType
    fields: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[int] = None


class EventResp(BaseModel):
    acknowledged: bool
    should_finish: bool


class SubmitReq(ResultSubmission):
    session_id: str = Field(min_length=1)


class SubmitResp(BaseModel):
    accepted: bool
    passed: bool


class ReattemptReq(BaseModel):
    session_id: str = Field(min_length=1)
    candidate_name: str = ""
    score: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    finish_reason: Optional[FinishReason] = None


class ReattemptResp(BaseModel):
    accepted: bool


class ExamConfigResp(BaseModel):
    duration_sec: int
    questions_per_attempt: int
    pass_rate: float
    auto_finish_threshold: int
    selection_strategy: str


class ExportResp(BaseModel):
    ok: bool = True
    count: int
    results: List[ResultRecord] = Field(default_factory=list)
