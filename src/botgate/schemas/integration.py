"""Pydantic v2 request schemas for integration setup.

Setup requests carry raw platform credentials. They are validated against
the live platform before anything is stored, and are never echoed back:
responses use the generic ``JSONAPIResource`` with credential-free
attributes.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class TelegramSetupRequest(BaseModel):
    """Connect a Telegram bot created through BotFather."""

    account_id: str = Field(..., max_length=255)
    bot_token: str = Field(..., min_length=1)


class WhatsAppSetupRequest(BaseModel):
    """Connect a WhatsApp Cloud API phone number.

    ``verify_token`` is generated when omitted; the operator pastes it into
    the Meta webhook configuration. ``app_secret`` enables
    ``X-Hub-Signature-256`` verification of inbound webhook bodies.
    """

    account_id: str = Field(..., max_length=255)
    phone_number_id: str = Field(..., min_length=1, max_length=255)
    access_token: str = Field(..., min_length=1)
    verify_token: str | None = Field(default=None, max_length=255)
    business_account_id: str | None = Field(default=None, max_length=255)
    app_secret: str | None = None


class SendMessageRequest(BaseModel):
    """Operator-authored outbound message on an existing integration."""

    chat_id: str = Field(..., min_length=1, max_length=255)
    text: str = Field(..., min_length=1)
