from __future__ import annotations  # HTTP client for the exam session API

import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol

from .events import DeliveryResult
from .models import ExamResult


logger = logging.getLogger(__name__)


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], timeout: float) -> HttpResponse: ...


class ExamApiError(RuntimeError):  # Raised when a session cannot be issued
    pass


def _default_client() -> HttpClient:
    import httpx

    return httpx.Client()


class ExamApiClient:  # Event sink that talks to the exam HTTP API
    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[HttpClient] = None,
        timeout_s: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or _default_client()
        self._timeout = timeout_s
        self._clock = clock
        self.tg: Optional[Dict[str, Any]] = None

    def create_session(self) -> str:  # Resolve a fresh session identifier before begin()
        delivery = self._post("/api/sessions", {})
        session_id = delivery.payload.get("session_id")
        if not delivery.delivered or not session_id:
            raise ExamApiError(f"Could not create session: {delivery.error or 'missing session_id'}")
        return str(session_id)

    def emit(self, session_id: str, event_type: str, fields: Dict[str, Any]) -> DeliveryResult:
        return self._post(
            "/api/event",
            {
                "session_id": session_id,
                "event_type": event_type,
                "fields": fields,
                "timestamp": int(self._clock() * 1000),
            },
        )

    def submit(self, result: ExamResult) -> DeliveryResult:
        payload: Dict[str, Any] = {
            "session_id": result.session_id,
            "candidate_name": result.candidate_name,
            "score": result.score,
            "total": result.total,
            "finish_reason": result.finish_reason.value,
            "counters": result.counters.model_dump(),
            "duration_sec": result.duration_sec,
            "answers": result.answers,
        }
        if self.tg:
            payload["tg"] = self.tg
        return self._post("/api/submit", payload)

    def request_reattempt(self, result: ExamResult) -> DeliveryResult:
        return self._post(
            "/api/reattempt",
            {
                "session_id": result.session_id,
                "candidate_name": result.candidate_name,
                "score": result.score,
                "total": result.total,
                "finish_reason": result.finish_reason.value,
            },
        )

    def _post(self, path: str, payload: Dict[str, Any]) -> DeliveryResult:  # Single attempt, no retry
        url = f"{self._base_url}{path}"
        try:
            response = self._client.post(url, json=payload, timeout=self._timeout)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Exam API transport failure url=%s: %s", url, exc)
            return DeliveryResult.failed(f"transport: {exc}")
        try:
            body = response.json()
        except Exception:  # noqa: BLE001
            body = {}
        if response.status_code >= 400:
            logger.warning("Exam API error url=%s status=%s", url, response.status_code)
            return DeliveryResult(status="failed", error=f"status {response.status_code}", payload=body if isinstance(body, dict) else {})
        return DeliveryResult.ok(body if isinstance(body, dict) else {})


__all__ = ["ExamApiClient", "ExamApiError", "HttpClient", "HttpResponse"]
