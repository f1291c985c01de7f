"""Admin notifications for session lifecycle events."""
from __future__ import annotations

import html
import logging
from typing import TYPE_CHECKING, Optional

from exam.events import DeliveryResult
from observability.logger import log_event

if TYPE_CHECKING:
    from services.session_store import SessionRecord

    from .telegram import TelegramGateway

REASON_LABELS = {
    "manual": "finished by candidate",
    "time_up": "time is up",
    "too_many_violations": "too many page leaves",
}


def _name(record: "SessionRecord") -> str:
    return html.escape(record.candidate_name or "unknown")


def format_start(record: "SessionRecord") -> str:
    return f"▶️ <b>{_name(record)}</b> started an attempt\nsession: <code>{record.session_id}</code>"


def format_threshold(record: "SessionRecord", threshold: int) -> str:
    return (
        f"⚠️ <b>{_name(record)}</b> left the exam page {record.leave_count} times "
        f"(limit {threshold})\nsession: <code>{record.session_id}</code>"
    )


def format_finish(record: "SessionRecord", percent: int) -> str:
    reason = record.finish_reason.value if record.finish_reason else "manual"
    verdict = "✅ passed" if record.passed else "❌ failed"
    return (
        f"🏁 <b>{_name(record)}</b>: {record.score}/{record.total} ({percent}%) {verdict}\n"
        f"reason: {REASON_LABELS.get(reason, reason)}\n"
        f"leaves: hidden={record.hidden_count} blur={record.blur_count} total={record.leave_count}\n"
        f"session: <code>{record.session_id}</code>"
    )


def format_reattempt(record: "SessionRecord") -> str:
    return (
        f"🔁 <b>{_name(record)}</b> asks for another attempt "
        f"(last result {record.score}/{record.total})\nsession: <code>{record.session_id}</code>"
    )


class NotificationRelay:
    """Deliver lifecycle messages to the administrator chat."""

    def __init__(self, gateway: Optional["TelegramGateway"], admin_id: str) -> None:
        self._gateway = gateway
        self._admin_id = admin_id

    @property
    def enabled(self) -> bool:
        return bool(self._gateway is not None and self._gateway.enabled and self._admin_id)

    def _send(self, kind: str, record: "SessionRecord", text: str) -> DeliveryResult:
        gateway = self._gateway
        if gateway is None or not self.enabled:
            return DeliveryResult.failed("notifications disabled")
        delivery = gateway.send_message(self._admin_id, text)
        log_event(
            "notify",
            record.session_id,
            level=logging.INFO if delivery.delivered else logging.WARNING,
            event=kind,
            status=delivery.status,
        )
        return delivery

    def session_started(self, record: "SessionRecord") -> DeliveryResult:
        return self._send("start", record, format_start(record))

    def threshold_crossed(self, record: "SessionRecord", threshold: int) -> DeliveryResult:
        return self._send("threshold", record, format_threshold(record, threshold))

    def session_finished(self, record: "SessionRecord", percent: int) -> DeliveryResult:
        return self._send("finish", record, format_finish(record, percent))

    def reattempt_requested(self, record: "SessionRecord") -> DeliveryResult:
        return self._send("reattempt", record, format_reattempt(record))


__all__ = [
    "NotificationRelay",
    "format_finish",
    "format_reattempt",
    "format_start",
    "format_threshold",
]
