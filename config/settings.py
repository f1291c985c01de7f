"""Application settings and configuration management."""
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from exam.models import ExamConfig


class ConfigurationError(RuntimeError):
    """Raised when required runtime configuration is missing."""


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/exam.db")
    SESSION_STORE: Literal["memory", "file"] = "memory"
    SESSIONS_DIR: str = "data/sessions"
    SESSION_TTL_SECONDS: int = Field(default=6 * 3600, ge=1)

    APP_URL: str = ""
    BOT_TOKEN: str = ""
    ADMIN_TG_ID: str = ""
    REPORT_API_KEY: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    TELEGRAM_TIMEOUT_S: float = Field(default=10.0, ge=0.1)
    POLLING_ENABLED: bool = True
    REQUIRE_CONFIG: bool = True

    QUESTIONS_PATH: str = "data/questions.json"
    PUBLIC_DIR: str = "public"

    EXAM_DURATION_SEC: int = Field(default=600, ge=1)
    QUESTIONS_PER_ATTEMPT: int = Field(default=15, ge=1)
    PASS_RATE: float = Field(default=0.70, ge=0.0, le=1.0)
    AUTO_FINISH_THRESHOLD: int = Field(default=3, ge=1)
    SELECTION_STRATEGY: Literal["random", "balanced"] = "random"

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")

    def exam_config(self) -> ExamConfig:
        return ExamConfig(
            duration_sec=self.EXAM_DURATION_SEC,
            questions_per_attempt=self.QUESTIONS_PER_ATTEMPT,
            pass_rate=self.PASS_RATE,
            auto_finish_threshold=self.AUTO_FINISH_THRESHOLD,
            selection_strategy=self.SELECTION_STRATEGY,
        )


def ensure_runtime_config(cfg: Settings) -> None:
    """Refuse to start without the bot credential and public base URL.

    Raises:
        ConfigurationError: If ``BOT_TOKEN`` or ``APP_URL`` is empty while
            ``REQUIRE_CONFIG`` is enabled.
    """

    if not cfg.REQUIRE_CONFIG:
        return
    missing = [name for name in ("BOT_TOKEN", "APP_URL") if not getattr(cfg, name).strip()]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")


settings = Settings()
