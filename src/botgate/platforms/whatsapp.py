"""WhatsApp Cloud API adapter (Graph API)."""

from __future__ import annotations

import hmac
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from botgate.errors import DecodeError, DeliveryError
from botgate.models.integration import Platform
from botgate.platforms.base import (
    CredentialCheck,
    InboundUpdate,
    PlatformAdapter,
    SendResult,
    UpdateKind,
    split_text,
)
from botgate.schemas.whatsapp import WhatsAppChangeValue, WhatsAppWebhookPayload

logger = logging.getLogger(__name__)


class GraphAPIError(Exception):
    """A Graph API call failed or returned an ``error`` object."""

    def __init__(self, description: str, status_code: int | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.status_code = status_code


class WhatsAppAdapter(PlatformAdapter):
    """Adapter for a single WhatsApp Business phone number.

    Args:
        phone_number_id: Cloud API phone-number id (the integration identity).
        access_token: System-user or temporary access token.
        verify_token: Token Meta echoes back during the subscription handshake.
        graph_base: Graph API origin including version.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport override.
    """

    platform = Platform.WHATSAPP

    def __init__(
        self,
        phone_number_id: str,
        access_token: str,
        *,
        verify_token: str | None = None,
        graph_base: str = "https://graph.facebook.com/v18.0",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.phone_number_id = phone_number_id
        self._access_token = access_token
        self._verify_token = verify_token
        self._graph_base = graph_base.rstrip("/")

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            with self._client() as client:
                response = client.request(
                    method, f"{self._graph_base}/{path}", headers=headers, json=json
                )
        except httpx.HTTPError as exc:
            raise GraphAPIError(
                f"WhatsApp API unreachable ({exc.__class__.__name__})"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise GraphAPIError(
                f"Non-JSON response from WhatsApp (HTTP {response.status_code})",
                response.status_code,
            ) from exc

        if response.is_error or not isinstance(body, dict) or "error" in body:
            error = body.get("error") if isinstance(body, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            raise GraphAPIError(
                message or f"WhatsApp API error (HTTP {response.status_code})",
                response.status_code,
            )
        return body

    def validate_credentials(self) -> CredentialCheck:
        try:
            body = self._request("GET", self.phone_number_id)
        except GraphAPIError as exc:
            return CredentialCheck(valid=False, reason=exc.description)

        identity = str(body.get("id", ""))
        if identity != self.phone_number_id:
            return CredentialCheck(
                valid=False,
                reason="Access token does not grant access to this phone number",
            )
        return CredentialCheck(
            valid=True,
            identity=identity,
            display_name=body.get("display_phone_number") or body.get("verified_name"),
        )

    def verify_handshake(self, mode: str | None, token: str | None, challenge: str | None) -> str | None:
        """Answer Meta's subscription handshake.

        Returns the challenge to echo back, or None when the handshake must
        be refused.
        """
        if mode != "subscribe" or not token or not self._verify_token:
            return None
        if not hmac.compare_digest(token.encode(), self._verify_token.encode()):
            return None
        return challenge or ""

    def decode_update(self, raw_payload: Any) -> list[InboundUpdate]:
        try:
            payload = WhatsAppWebhookPayload.model_validate(raw_payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Malformed WhatsApp webhook ({exc.error_count()} validation errors)"
            ) from exc

        updates: list[InboundUpdate] = []
        for entry in payload.entry:
            for change in entry.changes:
                updates.extend(_updates_from_value(change.value))
        return updates

    def send(self, chat_id: str | int, text: str) -> SendResult:
        message_id: str | None = None
        for chunk in split_text(text):
            payload = {
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": str(chat_id),
                "type": "text",
                "text": {"preview_url": False, "body": chunk},
            }
            try:
                body = self._request("POST", f"{self.phone_number_id}/messages", json=payload)
            except GraphAPIError as exc:
                raise DeliveryError(exc.description, exc.status_code) from exc
            messages = body.get("messages") or []
            if messages and isinstance(messages[0], dict) and messages[0].get("id"):
                message_id = str(messages[0]["id"])
        return SendResult(platform_message_id=message_id)

    def mark_as_read(self, platform_message_id: str) -> bool:
        """Send a read receipt for an inbound message. Best effort."""
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": platform_message_id,
        }
        try:
            self._request("POST", f"{self.phone_number_id}/messages", json=payload)
        except GraphAPIError as exc:
            logger.warning(
                "WhatsApp read receipt failed for message %s: %s",
                platform_message_id,
                exc.description,
            )
            return False
        return True

    def teardown(self) -> bool:
        # Webhook subscriptions are per Meta app, not per phone number
        logger.debug("No WhatsApp webhook to remove for phone %s", self.phone_number_id)
        return True


def _updates_from_value(value: WhatsAppChangeValue) -> list[InboundUpdate]:
    names = {
        contact.wa_id: contact.profile.name
        for contact in value.contacts
        if contact.profile is not None
    }
    updates = [
        InboundUpdate(
            kind=UpdateKind.MESSAGE,
            chat_id=message.from_ or None,
            user_id=message.from_ or None,
            username=names.get(message.from_),
            text=message.text.body if message.text else None,
            platform_message_id=message.id,
        )
        for message in value.messages
    ]
    updates.extend(
        InboundUpdate(
            kind=UpdateKind.STATUS,
            chat_id=status.recipient_id,
            text=status.status,
            platform_message_id=status.id,
        )
        for status in value.statuses
    )
    return updates
