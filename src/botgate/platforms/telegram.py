"""Telegram Bot API adapter.

Talks to ``{api_base}/bot{token}/{method}``. Every Bot API response is an
``{"ok": bool, "result" | "description": ...}`` envelope, unwrapped by
``_call``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from botgate.errors import DecodeError, DeliveryError, WebhookRegistrationError
from botgate.models.integration import Platform
from botgate.platforms.base import (
    CredentialCheck,
    InboundUpdate,
    PlatformAdapter,
    SendResult,
    UpdateKind,
    split_text,
)
from botgate.schemas.telegram import TelegramBotInfo, TelegramMessage, TelegramUpdate

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message", "edited_message", "callback_query"]


class TelegramAPIError(Exception):
    """A Bot API call returned ``ok: false`` or could not be completed."""

    def __init__(self, description: str, status_code: int | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.status_code = status_code


class TelegramAdapter(PlatformAdapter):
    """Adapter for bots created through BotFather.

    Args:
        bot_token: The bot's API token.
        api_base: Bot API origin, overridable for self-hosted Bot API servers.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport override.
    """

    platform = Platform.TELEGRAM

    def __init__(
        self,
        bot_token: str,
        *,
        api_base: str = "https://api.telegram.org",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._base_url = f"{api_base.rstrip('/')}/bot{bot_token}"

    def _call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """Invoke a Bot API method and return its ``result``.

        Raises:
            TelegramAPIError: On transport failure or an ``ok: false`` reply.
        """
        try:
            with self._client() as client:
                response = client.post(f"{self._base_url}/{method}", json=payload or {})
        except httpx.HTTPError as exc:
            # str(exc) can carry the request URL, which contains the token
            raise TelegramAPIError(
                f"Telegram API unreachable ({exc.__class__.__name__})"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise TelegramAPIError(
                f"Non-JSON response from Telegram (HTTP {response.status_code})",
                response.status_code,
            ) from exc

        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else None
            raise TelegramAPIError(
                description or f"Telegram API error (HTTP {response.status_code})",
                response.status_code,
            )
        return body.get("result")

    def validate_credentials(self) -> CredentialCheck:
        try:
            info = TelegramBotInfo.model_validate(self._call("getMe"))
        except TelegramAPIError as exc:
            return CredentialCheck(valid=False, reason=exc.description)
        except ValidationError:
            return CredentialCheck(valid=False, reason="Unexpected getMe response from Telegram")

        if not info.is_bot:
            return CredentialCheck(valid=False, reason="Token does not belong to a bot account")

        return CredentialCheck(
            valid=True,
            identity=str(info.id),
            display_name=f"@{info.username}",
        )

    def register_webhook(self, webhook_url: str, secret_token: str | None = None) -> None:
        """Point the bot's updates at our webhook receiver.

        Raises:
            WebhookRegistrationError: If Telegram refuses the URL or secret.
        """
        payload: dict[str, Any] = {"url": webhook_url, "allowed_updates": ALLOWED_UPDATES}
        if secret_token:
            payload["secret_token"] = secret_token
        try:
            self._call("setWebhook", payload)
        except TelegramAPIError as exc:
            raise WebhookRegistrationError(exc.description) from exc

    def decode_update(self, raw_payload: Any) -> list[InboundUpdate]:
        try:
            update = TelegramUpdate.model_validate(raw_payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Malformed Telegram update ({exc.error_count()} validation errors)"
            ) from exc

        if update.message is not None:
            return [_from_message(UpdateKind.MESSAGE, update.message)]

        if update.edited_message is not None:
            return [_from_message(UpdateKind.EDITED, update.edited_message)]

        if update.callback_query is not None:
            query = update.callback_query
            return [
                InboundUpdate(
                    kind=UpdateKind.CALLBACK,
                    chat_id=str(query.message.chat.id) if query.message else None,
                    user_id=str(query.from_user.id),
                    username=query.from_user.username,
                    text=query.data,
                )
            ]

        return [InboundUpdate(kind=UpdateKind.UNKNOWN)]

    def send(self, chat_id: str | int, text: str) -> SendResult:
        message_id: str | None = None
        for chunk in split_text(text):
            try:
                result = self._call("sendMessage", {"chat_id": chat_id, "text": chunk})
            except TelegramAPIError as exc:
                raise DeliveryError(exc.description, exc.status_code) from exc
            if isinstance(result, dict) and "message_id" in result:
                message_id = str(result["message_id"])
        return SendResult(platform_message_id=message_id)

    def teardown(self) -> bool:
        try:
            self._call("deleteWebhook")
        except TelegramAPIError as exc:
            logger.warning("Telegram deleteWebhook failed: %s", exc.description)
            return False
        return True


def _from_message(kind: UpdateKind, message: TelegramMessage) -> InboundUpdate:
    sender = message.from_user
    return InboundUpdate(
        kind=kind,
        chat_id=str(message.chat.id),
        user_id=str(sender.id) if sender else None,
        username=sender.username if sender else None,
        text=message.text,
        platform_message_id=str(message.message_id),
    )
