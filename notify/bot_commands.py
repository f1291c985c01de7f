"""Admin command surface of the notification bot."""
from __future__ import annotations

import html
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from services.registry import SessionRegistry

from .telegram import TelegramGateway

logger = logging.getLogger(__name__)

NO_ACCESS = "⛔ No access."
GREETING = (
    "Hi! This is the exam bot.\n\n"
    "• Taking an exam? Open it from the button or link you were given.\n"
    "• Admin: /export, /sessions, /delete &lt;session_id&gt;"
)
FALLBACK = "Got it. Admins can use /export."


class TgUser(BaseModel):
    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None


class TgChat(BaseModel):
    id: int


class TgMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat: TgChat
    sender: Optional[TgUser] = Field(default=None, alias="from")
    text: Optional[str] = None


class TgUpdate(BaseModel):
    update_id: int
    message: Optional[TgMessage] = None
    edited_message: Optional[TgMessage] = None


class AdminCommands:
    def __init__(
        self,
        gateway: TelegramGateway,
        registry: SessionRegistry,
        *,
        admin_id: str,
        app_url: str,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._admin_id = str(admin_id or "")
        self._app_url = app_url.rstrip("/")

    def is_admin(self, user_id: Any) -> bool:
        return bool(self._admin_id) and str(user_id) == self._admin_id

    def handle_update(self, raw: Dict[str, Any]) -> Optional[str]:
        """Reply to a single update; returns the reply text (``None`` when ignored)."""

        try:
            update = TgUpdate.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Ignoring malformed update: %s", exc)
            return None
        message = update.message or update.edited_message
        if message is None or not message.text:
            return None

        reply = self.reply_for(message.text.strip(), message.sender)
        self._gateway.send_message(message.chat.id, reply)
        return reply

    def reply_for(self, text: str, sender: Optional[TgUser]) -> str:
        command, _, argument = text.partition(" ")
        command = command.split("@", 1)[0].lower()
        argument = argument.strip()

        if command == "/start":
            return GREETING
        if command == "/whoami":
            if sender is None:
                return "id: <b>-</b>"
            return f"id: <b>{sender.id}</b>\nusername: <b>{html.escape(sender.username or '-')}</b>"
        if command in ("/export", "/sessions", "/delete"):
            if sender is None or not self.is_admin(sender.id):
                return NO_ACCESS
            if command == "/export":
                return self._export_hint()
            if command == "/sessions":
                return self._sessions(argument)
            return self._delete(argument)
        return FALLBACK

    def _export_hint(self) -> str:
        return (
            "✅ Export:\n"
            f"JSON: {self._app_url}/api/admin/results?api_key=REPORT_API_KEY\n"
            f"CSV:  {self._app_url}/api/admin/results.csv?api_key=REPORT_API_KEY\n\n"
            "⚠️ Replace REPORT_API_KEY with your key."
        )

    def _sessions(self, argument: str) -> str:
        limit = int(argument) if argument.isdigit() else 10
        records = self._registry.list_recent(limit)
        if not records:
            return "No active sessions."
        lines = []
        for record in records:
            if record.finished:
                status = f"{record.score}/{record.total} {'passed' if record.passed else 'failed'}"
            elif record.started_at:
                status = "in progress"
            else:
                status = "issued"
            name = html.escape(record.candidate_name or "-")
            lines.append(f"<code>{record.session_id}</code> {name} · leaves={record.leave_count} · {status}")
        return "\n".join(lines)

    def _delete(self, argument: str) -> str:
        if not argument:
            return "Usage: /delete &lt;session_id&gt;"
        if self._registry.delete_session(argument):
            return f"🗑 Deleted <code>{html.escape(argument)}</code>"
        return f"Session <code>{html.escape(argument)}</code> not found."


__all__ = ["AdminCommands", "TgMessage", "TgUpdate", "TgUser"]
