"""Accounting event sinks and delivery results."""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from .models import ExamResult

EventType = Literal["start", "hidden", "visible", "blur", "submit"]


class DeliveryResult(BaseModel):
    """Outcome of a single best-effort dispatch; never retried."""

    status: Literal["delivered", "failed"]
    error: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def delivered(self) -> bool:
        return self.status == "delivered"

    @classmethod
    def ok(cls, payload: Optional[Dict[str, Any]] = None) -> "DeliveryResult":
        return cls(status="delivered", payload=payload or {})

    @classmethod
    def failed(cls, error: str) -> "DeliveryResult":
        return cls(status="failed", error=error)


class EventSink(Protocol):  # Boundary between the state machine and the session registry
    def emit(self, session_id: str, event_type: str, fields: Dict[str, Any]) -> DeliveryResult: ...

    def submit(self, result: ExamResult) -> DeliveryResult: ...


class NullSink:  # Offline sink: accepts everything, reports nothing
    def emit(self, session_id: str, event_type: str, fields: Dict[str, Any]) -> DeliveryResult:
        return DeliveryResult.ok()

    def submit(self, result: ExamResult) -> DeliveryResult:
        return DeliveryResult.ok()


__all__ = ["DeliveryResult", "EventSink", "EventType", "NullSink"]
