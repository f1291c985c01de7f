"""Session store abstraction with in-memory and JSON-file backends."""
from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from pydantic import BaseModel, Field, ValidationError

from exam.models import FinishReason

logger = logging.getLogger(__name__)


class SessionRecord(BaseModel):
    """Server-side counterpart of one attempt; ``finished_at`` is set exactly once."""

    session_id: str
    created_at: int
    updated_at: int
    candidate_name: str = ""
    blur_count: int = Field(default=0, ge=0)
    hidden_count: int = Field(default=0, ge=0)
    leave_count: int = Field(default=0, ge=0)
    started_at: Optional[int] = None
    finished_at: Optional[int] = None
    finish_reason: Optional[FinishReason] = None
    score: Optional[int] = None
    total: Optional[int] = None
    passed: Optional[bool] = None
    result_id: Optional[str] = None
    threshold_notified: bool = False

    @property
    def finished(self) -> bool:
        return self.finished_at is not None


class SessionStore(Protocol):
    def get(self, session_id: str) -> Optional[SessionRecord]: ...

    def put(self, record: SessionRecord) -> None: ...

    def delete(self, session_id: str) -> bool: ...

    def list(self) -> List[SessionRecord]: ...


class InMemorySessionStore:
    """Process-local mapping; records expire ``ttl_seconds`` after their last write."""

    def __init__(self, ttl_seconds: int = 6 * 3600, clock: Callable[[], float] = time.time) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._items: Dict[str, Tuple[float, SessionRecord]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[SessionRecord]:
        with self._lock:
            entry = self._items.get(session_id)
            if entry is None:
                return None
            expires_at, record = entry
            if self._clock() >= expires_at:
                del self._items[session_id]
                return None
            return record.model_copy(deep=True)

    def put(self, record: SessionRecord) -> None:
        with self._lock:
            self._items[record.session_id] = (self._clock() + self._ttl, record.model_copy(deep=True))

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._items.pop(session_id, None) is not None

    def list(self) -> List[SessionRecord]:
        now = self._clock()
        with self._lock:
            for sid in [sid for sid, (expires_at, _) in self._items.items() if now >= expires_at]:
                del self._items[sid]
            records = [record.model_copy(deep=True) for _, record in self._items.values()]
        return sorted(records, key=lambda record: record.created_at, reverse=True)


_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class JsonFileSessionStore:
    """One JSON file per session, written atomically; TTL measured from ``updated_at``."""

    def __init__(self, directory: str, ttl_seconds: int = 6 * 3600, clock: Callable[[], float] = time.time) -> None:
        self._dir = directory
        self._ttl = ttl_seconds
        self._clock = clock

    def _path(self, session_id: str) -> str:
        if not _SAFE_ID.match(session_id):
            raise ValueError(f"Invalid session identifier: {session_id!r}")
        return os.path.join(self._dir, f"{session_id}.json")

    def _expired(self, record: SessionRecord) -> bool:
        return self._clock() * 1000 - record.updated_at >= self._ttl * 1000

    def get(self, session_id: str) -> Optional[SessionRecord]:
        try:
            path = self._path(session_id)
        except ValueError:
            return None
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as handle:
                record = SessionRecord(**json.load(handle))
        except (OSError, TypeError, ValueError, ValidationError) as exc:
            logger.warning("Unreadable session file %s: %s", path, exc)
            return None
        if self._expired(record):
            self.delete(session_id)
            return None
        return record

    def put(self, record: SessionRecord) -> None:
        os.makedirs(self._dir, exist_ok=True)
        path = self._path(record.session_id)
        tmp_path = path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(record.model_dump(mode="json"), handle, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)

    def delete(self, session_id: str) -> bool:
        try:
            path = self._path(session_id)
        except ValueError:
            return False
        if not os.path.exists(path):
            return False
        os.remove(path)
        return True

    def list(self) -> List[SessionRecord]:
        if not os.path.isdir(self._dir):
            return []
        records: List[SessionRecord] = []
        for name in os.listdir(self._dir):
            if not name.endswith(".json"):
                continue
            record = self.get(name[: -len(".json")])
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda record: record.created_at, reverse=True)


__all__ = ["InMemorySessionStore", "JsonFileSessionStore", "SessionRecord", "SessionStore"]
