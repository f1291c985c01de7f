from __future__ import annotations  # FastAPI server for the exam mini-app

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from api.admin import admin_router
from api.routes import router
from config.settings import Settings, ensure_runtime_config, settings
from exam.models import Question
from exam.question_pool import QuestionPoolError, load_questions
from notify.bot_commands import AdminCommands
from notify.polling import BotPoller
from notify.telegram import TelegramGateway
from services.registry import SessionRegistry
from services.sessions import build_gateway, build_registry
from storage.migrate import migrate


logger = logging.getLogger(__name__)


def _load_pool(path: str) -> Optional[List[Question]]:  # Question pool is optional for the API
    try:
        return load_questions(Path(path))
    except QuestionPoolError as exc:
        logger.warning("Question pool not loaded: %s", exc)
        return None


def _start_poller(app: FastAPI, cfg: Settings) -> Optional[BotPoller]:  # Launch admin bot polling when configured
    gateway: TelegramGateway = app.state.gateway
    if not cfg.POLLING_ENABLED or not gateway.enabled:
        logger.warning("Bot polling disabled (POLLING_ENABLED=%s, BOT_TOKEN set=%s)", cfg.POLLING_ENABLED, gateway.enabled)
        return None
    commands = AdminCommands(gateway, app.state.registry, admin_id=cfg.ADMIN_TG_ID, app_url=cfg.APP_URL)
    poller = BotPoller(gateway, commands)
    poller.start()
    return poller


def create_app(
    cfg: Optional[Settings] = None,
    *,
    registry: Optional[SessionRegistry] = None,
    gateway: Optional[TelegramGateway] = None,
) -> FastAPI:  # Build the application with injected collaborators
    cfg = cfg or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        ensure_runtime_config(cfg)
        logger.info("APP_URL=%s REPORT_API_KEY is %s", cfg.APP_URL, "SET" if cfg.REPORT_API_KEY else "NOT set")
        poller = _start_poller(app, cfg)
        try:
            yield
        finally:
            if poller is not None:
                poller.stop()

    # Storage helpers write through the process-wide settings; prepare both paths when they differ.
    for db_path in dict.fromkeys((cfg.DB_PATH, settings.DB_PATH)):
        migrate(db_path)
    gateway = gateway or build_gateway(cfg)

    app = FastAPI(title="Exam Session API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = cfg
    app.state.gateway = gateway
    app.state.registry = registry or build_registry(cfg, gateway)
    app.state.questions = _load_pool(cfg.QUESTIONS_PATH)

    @app.get("/health")
    def health() -> dict:  # Liveness check
        return {"ok": True, "ts": int(time.time() * 1000)}

    app.include_router(router)
    app.include_router(admin_router)

    if cfg.PUBLIC_DIR and os.path.isdir(cfg.PUBLIC_DIR):
        app.mount("/", StaticFiles(directory=cfg.PUBLIC_DIR, html=True), name="public")

    return app


def main() -> None:  # Console entry point
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s %(name)s :: %(message)s")
    ensure_runtime_config(settings)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=int(os.getenv("PORT", "3000")))


if __name__ == "__main__":
    main()
