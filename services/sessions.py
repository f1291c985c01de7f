"""Helpers for wiring the session registry from settings."""
from __future__ import annotations

from typing import Optional

from config.settings import Settings
from notify.relay import NotificationRelay
from notify.telegram import TelegramGateway

from .registry import SessionRegistry
from .session_store import InMemorySessionStore, JsonFileSessionStore, SessionStore


def build_store(cfg: Settings) -> SessionStore:
    """Return the session store selected by ``SESSION_STORE``."""

    if cfg.SESSION_STORE == "file":
        return JsonFileSessionStore(cfg.SESSIONS_DIR, ttl_seconds=cfg.SESSION_TTL_SECONDS)
    return InMemorySessionStore(ttl_seconds=cfg.SESSION_TTL_SECONDS)


def build_gateway(cfg: Settings) -> TelegramGateway:
    return TelegramGateway(
        cfg.BOT_TOKEN,
        api_base=cfg.TELEGRAM_API_BASE,
        timeout_s=cfg.TELEGRAM_TIMEOUT_S,
    )


def build_registry(cfg: Settings, gateway: Optional[TelegramGateway] = None) -> SessionRegistry:
    """Create a registry with the configured store and admin relay."""

    relay = NotificationRelay(gateway if gateway is not None else build_gateway(cfg), cfg.ADMIN_TG_ID)
    return SessionRegistry(build_store(cfg), config=cfg.exam_config(), relay=relay)


__all__ = ["build_gateway", "build_registry", "build_store"]
