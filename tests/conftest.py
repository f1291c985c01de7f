import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api_server import create_app
from config.settings import Settings, settings
from exam.models import ExamConfig, Option, Question, QuestionType
from notify.relay import NotificationRelay
from notify.telegram import TelegramGateway
from services.registry import SessionRegistry
from services.session_store import InMemorySessionStore
from storage.migrate import migrate


class FakeResponse:
    def __init__(self, body: Any, status_code: int = 200) -> None:
        self._body = body
        self.status_code = status_code

    def json(self) -> Any:
        return self._body


class FakeTelegramClient:
    """Records Bot API calls and answers ``ok`` unless told to fail."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail = False
        self.updates: List[Dict[str, Any]] = []

    def post(self, url: str, *, json: Dict[str, Any], timeout: float) -> FakeResponse:
        if self.fail:
            raise ConnectionError("telegram unreachable")
        method = url.rsplit("/", 1)[-1]
        self.calls.append({"method": method, "params": json})
        if method == "getUpdates":
            updates, self.updates = self.updates, []
            return FakeResponse({"ok": True, "result": updates})
        return FakeResponse({"ok": True, "result": {"message_id": len(self.calls)}})

    def messages(self) -> List[str]:
        return [call["params"]["text"] for call in self.calls if call["method"] == "sendMessage"]


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_question(qid: str, correct: tuple = ("a",), qtype: QuestionType = QuestionType.SINGLE) -> Question:
    return Question(
        id=qid,
        type=qtype,
        text=f"Question {qid}",
        options=tuple(Option(id=oid, text=oid.upper(), is_correct=oid in correct) for oid in ("a", "b", "c", "d")),
    )


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture
def pool() -> List[Question]:
    return [make_question(f"q{index}") for index in range(1, 31)]


@pytest.fixture
def tg_client() -> FakeTelegramClient:
    return FakeTelegramClient()


@pytest.fixture
def gateway(tg_client) -> TelegramGateway:
    return TelegramGateway("TEST_TOKEN", client=tg_client)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(gateway, clock) -> SessionRegistry:
    return SessionRegistry(
        InMemorySessionStore(ttl_seconds=3600, clock=clock),
        config=ExamConfig(),
        relay=NotificationRelay(gateway, "42"),
        clock=clock,
    )


@pytest.fixture
def questions_file(tmp_path):
    path = tmp_path / "questions.json"
    questions = [
        {
            "id": f"q{index}",
            "type": "single",
            "text": f"Question {index}",
            "options": [
                {"id": "a", "text": "A", "is_correct": True},
                {"id": "b", "text": "B"},
            ],
        }
        for index in range(1, 6)
    ]
    path.write_text(json.dumps({"questions": questions}), encoding="utf-8")
    return path


@pytest.fixture
def app_settings(questions_file) -> Settings:
    return Settings(
        _env_file=None,
        DB_PATH=settings.DB_PATH,
        REQUIRE_CONFIG=False,
        POLLING_ENABLED=False,
        PUBLIC_DIR="",
        QUESTIONS_PATH=str(questions_file),
        REPORT_API_KEY="secret-key",
    )


@pytest.fixture
def client(app_settings, registry, gateway) -> TestClient:
    return TestClient(create_app(app_settings, registry=registry, gateway=gateway))
