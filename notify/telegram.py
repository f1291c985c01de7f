from __future__ import annotations  # Telegram Bot API gateway module

import logging
from typing import Any, Dict, List, Optional, Protocol

from exam.events import DeliveryResult


logger = logging.getLogger(__name__)  # Module logger setup


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], timeout: float) -> HttpResponse: ...


class TelegramGatewayError(RuntimeError):  # Base gateway error
    pass


def _default_client() -> HttpClient:
    import httpx

    return httpx.Client()


class TelegramGateway:  # Thin wrapper over the Bot API methods the service uses
    def __init__(
        self,
        token: str,
        *,
        api_base: str = "https://api.telegram.org",
        timeout_s: float = 10.0,
        client: Optional[HttpClient] = None,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout_s
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self._token)

    def _http(self) -> HttpClient:
        if self._client is None:
            self._client = _default_client()
        return self._client

    def call(self, method: str, params: Optional[Dict[str, Any]] = None, *, timeout: Optional[float] = None) -> Any:
        """Invoke a Bot API method and return its ``result`` field.

        Raises:
            TelegramGatewayError: On transport failure, a non-JSON body or a
                response whose ``ok`` flag is not ``true``.
        """

        if not self._token:
            raise TelegramGatewayError("BOT_TOKEN is not set")
        url = f"{self._api_base}/bot{self._token}/{method}"
        try:
            response = self._http().post(url, json=params or {}, timeout=timeout or self._timeout)
        except Exception as exc:  # noqa: BLE001
            raise TelegramGatewayError(f"Telegram transport failed for {method}") from exc
        try:
            data = response.json()
        except Exception as exc:  # noqa: BLE001
            raise TelegramGatewayError(f"Telegram returned non-JSON for {method}") from exc
        if not isinstance(data, dict) or data.get("ok") is not True:
            description = data.get("description") if isinstance(data, dict) else None
            raise TelegramGatewayError(
                f"Telegram API error for {method}: status={response.status_code} {description or ''}".rstrip()
            )
        return data.get("result")

    def send_message(self, chat_id: str | int, text: str, **extra: Any) -> DeliveryResult:
        """Best-effort ``sendMessage``; failures are logged and returned, never raised."""

        params: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        params.update(extra)
        try:
            result = self.call("sendMessage", params)
        except TelegramGatewayError as exc:
            logger.warning("Telegram sendMessage to %s failed: %s", chat_id, exc)
            return DeliveryResult.failed(str(exc))
        return DeliveryResult.ok(result if isinstance(result, dict) else {})

    def get_updates(self, offset: int, poll_timeout: int = 25) -> List[Dict[str, Any]]:
        result = self.call(
            "getUpdates",
            {"offset": offset, "timeout": poll_timeout},
            timeout=poll_timeout + self._timeout,
        )
        return result if isinstance(result, list) else []


__all__ = ["HttpClient", "HttpResponse", "TelegramGateway", "TelegramGatewayError"]
