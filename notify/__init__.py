from __future__ import annotations  # Re-export notification public API

from .relay import NotificationRelay
from .telegram import HttpClient, HttpResponse, TelegramGateway, TelegramGatewayError

__all__ = ["HttpClient", "HttpResponse", "NotificationRelay", "TelegramGateway", "TelegramGatewayError"]
