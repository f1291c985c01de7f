"""Structured logging for exam session lifecycle events.

``log_event`` writes one human-readable line to stdout and, unless
``ENABLE_FILE_LOGS`` is off, the same line to ``<LOG_FILE>-human.log`` plus a
JSON line to ``LOG_FILE``. Both files rotate by size.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any, Callable

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "1") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/exam.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

HUMAN_FORMAT = "[%(asctime)s] %(levelname)s %(name)s :: %(message)s"
HUMAN_KEYS = ("event", "candidate", "leave_count", "reason", "score", "total", "passed", "status")

_events = logging.getLogger("exam.events")
_events.setLevel(LOG_LEVEL)
_events.propagate = False


def _json_only(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _human_only(record: logging.LogRecord) -> bool:
    return not _json_only(record)


def _attach(handler: logging.Handler, fmt: str, keep: Callable[[logging.LogRecord], bool]) -> None:
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(keep)
    _events.addHandler(handler)


def _human_log_path(path: str) -> str:
    root, ext = os.path.splitext(path)
    return f"{root}-human{ext or '.log'}"


def _ensure_handlers() -> None:
    if _events.handlers:
        return

    _attach(logging.StreamHandler(stream=sys.stdout), HUMAN_FORMAT, _human_only)
    if not ENABLE_FILE_LOGS:
        return

    os.makedirs(os.path.dirname(LOG_FILE) or ".", exist_ok=True)
    for path, fmt, keep in (
        (LOG_FILE, "%(message)s", _json_only),
        (_human_log_path(LOG_FILE), HUMAN_FORMAT, _human_only),
    ):
        rotating = logging.handlers.RotatingFileHandler(
            path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
        _attach(rotating, fmt, keep)


def _summary(evt: dict[str, Any]) -> str:
    extras = " ".join(f"{key}={evt[key]}" for key in HUMAN_KEYS if key in evt)
    line = f"session={evt.get('session_id')} kind={evt.get('kind')}"
    return f"{line} {extras}" if extras else line


def _dispatch(level: int, msg: str, *, is_json: bool) -> None:
    record = _events.makeRecord(_events.name, level, "", 0, msg, (), None)
    record.is_json = is_json  # type: ignore[attr-defined]
    _events.handle(record)


def log_event(kind: str, session_id: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Record one lifecycle event for ``session_id``.

    Extra keyword fields land in the JSON line verbatim; the keys listed in
    ``HUMAN_KEYS`` are also appended to the human line.
    """

    _ensure_handlers()
    evt: dict[str, Any] = {"ts": time.time(), "trace": uuid.uuid4().hex, "kind": kind, "session_id": session_id}
    evt.update(fields)

    _dispatch(level, _summary(evt), is_json=False)
    if ENABLE_FILE_LOGS:
        _dispatch(level, json.dumps(evt, ensure_ascii=False, default=str), is_json=True)


__all__ = ["HUMAN_KEYS", "log_event"]
