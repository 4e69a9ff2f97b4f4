"""Integration setup and lifecycle endpoints returning JSON:API responses.

Setup endpoints validate credentials against the live platform before
storing anything. Responses never include platform credentials.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from botgate.api.deps import get_integration_service, get_message_service
from botgate.errors import DeliveryError, IntegrationSetupError, WebhookRegistrationError
from botgate.models.integration import Integration, Platform
from botgate.models.message import Message
from botgate.schemas.integration import (
    SendMessageRequest,
    TelegramSetupRequest,
    WhatsAppSetupRequest,
)
from botgate.schemas.jsonapi import (
    JSONAPIListResponse,
    JSONAPIRequest,
    JSONAPIResource,
    JSONAPISingleResponse,
)
from botgate.schemas.pagination import PaginationLinks, encode_cursor
from botgate.services.integration_service import IntegrationService
from botgate.services.message_service import MessageService

router = APIRouter()


# ---------------------------------------------------------------------------
# Attribute mapping helpers
# ---------------------------------------------------------------------------


def _integration_to_attrs(integration: Integration) -> dict:
    """Map an Integration model to JSON:API attributes, without credentials."""
    return {
        "account_id": integration.account_id,
        "platform": integration.platform,
        "name": integration.name,
        "status": integration.status,
        "identity": integration.canonical_identity,
        "webhook_url": integration.webhook_url,
        "telegram_bot_username": integration.telegram_bot_username,
        "whatsapp_display_number": integration.whatsapp_display_number,
        "created_at": integration.created_at.isoformat(),
        "updated_at": integration.updated_at.isoformat(),
    }


def _integration_resource(integration: Integration) -> JSONAPIResource:
    return JSONAPIResource(
        type="integrations",
        id=str(integration.id),
        attributes=_integration_to_attrs(integration),
    )


def _message_resource(message: Message) -> JSONAPIResource:
    return JSONAPIResource(
        type="messages",
        id=str(message.id),
        attributes={
            "platform": message.platform,
            "direction": message.direction,
            "chat_id": message.chat_id,
            "user_id_external": message.user_id_external,
            "user_name": message.user_name,
            "message_text": message.message_text,
            "platform_message_id": message.platform_message_id,
            "reply_to_message_id": message.reply_to_message_id,
            "status": message.status,
            "created_at": message.created_at.isoformat(),
        },
        relationships={
            "integration": {"data": {"type": "integrations", "id": str(message.integration_id)}}
        },
    )


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


@router.post("/telegram", status_code=201)
async def setup_telegram(
    body: JSONAPIRequest[TelegramSetupRequest],
    service: IntegrationService = Depends(get_integration_service),
) -> JSONAPISingleResponse:
    """Connect a Telegram bot and register its webhook."""
    attrs = body.data.attributes
    try:
        integration = await service.setup_telegram(attrs.account_id, attrs.bot_token)
    except IntegrationSetupError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except WebhookRegistrationError as exc:
        raise HTTPException(
            status_code=502, detail=f"Telegram rejected the webhook: {exc}"
        ) from exc

    return JSONAPISingleResponse(data=_integration_resource(integration))


@router.post("/whatsapp", status_code=201)
async def setup_whatsapp(
    body: JSONAPIRequest[WhatsAppSetupRequest],
    service: IntegrationService = Depends(get_integration_service),
) -> JSONAPISingleResponse:
    """Connect a WhatsApp Cloud API number.

    The verify token is returned once in ``meta`` so the operator can paste
    it into the Meta webhook configuration.
    """
    attrs = body.data.attributes
    try:
        integration = await service.setup_whatsapp(
            account_id=attrs.account_id,
            phone_number_id=attrs.phone_number_id,
            access_token=attrs.access_token,
            verify_token=attrs.verify_token,
            business_account_id=attrs.business_account_id,
            app_secret=attrs.app_secret,
        )
    except IntegrationSetupError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return JSONAPISingleResponse(
        data=_integration_resource(integration),
        meta={"verify_token": integration.whatsapp_verify_token},
    )


# ---------------------------------------------------------------------------
# Listing and lifecycle
# ---------------------------------------------------------------------------


@router.get("")
async def list_integrations(
    request: Request,
    page_after: str | None = Query(default=None, alias="page[after]"),
    page_size: int = Query(default=20, ge=1, le=100, alias="page[size]"),
    account_id: str | None = Query(default=None),
    platform: Platform | None = Query(default=None),
    service: IntegrationService = Depends(get_integration_service),
) -> JSONAPIListResponse:
    """List integrations with cursor-based pagination.

    Optionally filter by ``account_id`` and ``platform``.
    """
    try:
        integrations, pagination_meta = await service.list_integrations(
            page_size=page_size,
            after=page_after,
            account_id=account_id,
            platform=platform.value if platform else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    filters = ""
    if account_id:
        filters += f"&account_id={account_id}"
    if platform:
        filters += f"&platform={platform.value}"

    base_url = str(request.url).split("?")[0]
    links = PaginationLinks(first=f"{base_url}?page[size]={page_size}{filters}")

    if pagination_meta.has_next and integrations:
        last_integration = integrations[-1]
        next_cursor = encode_cursor(last_integration.created_at, str(last_integration.id))
        links.next = f"{base_url}?page[after]={next_cursor}&page[size]={page_size}{filters}"

    return JSONAPIListResponse(
        data=[_integration_resource(i) for i in integrations],
        meta=pagination_meta.model_dump(),
        links=links.model_dump(exclude_none=True),
    )


@router.get("/{integration_id}")
async def get_integration(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service),
) -> JSONAPISingleResponse:
    """Get a single integration by UUID."""
    integration = await service.get_integration(integration_id)
    if integration is None:
        raise HTTPException(status_code=404, detail="Integration not found")

    return JSONAPISingleResponse(data=_integration_resource(integration))


@router.post("/{integration_id}/disconnect")
async def disconnect_integration(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service),
) -> JSONAPISingleResponse:
    """Stop processing traffic for an integration and tear down its webhook."""
    try:
        integration = await service.disconnect(integration_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return JSONAPISingleResponse(data=_integration_resource(integration))


@router.post("/{integration_id}/reconnect")
async def reconnect_integration(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service),
) -> JSONAPISingleResponse:
    """Re-validate credentials; the resulting status is ``connected`` or ``error``."""
    try:
        integration = await service.reconnect(integration_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    return JSONAPISingleResponse(data=_integration_resource(integration))


@router.delete("/{integration_id}", status_code=204)
async def delete_integration(
    integration_id: str,
    service: IntegrationService = Depends(get_integration_service),
) -> None:
    """Tear down (best effort) and hard-delete an integration with its messages."""
    try:
        await service.delete_integration(integration_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@router.get("/{integration_id}/messages")
async def list_messages(
    integration_id: str,
    request: Request,
    page_before: str | None = Query(default=None, alias="page[before]"),
    page_size: int = Query(default=50, ge=1, le=100, alias="page[size]"),
    chat_id: str | None = Query(default=None),
    service: IntegrationService = Depends(get_integration_service),
    messages: MessageService = Depends(get_message_service),
) -> JSONAPIListResponse:
    """Message history for an integration, newest first."""
    if await service.get_integration(integration_id) is None:
        raise HTTPException(status_code=404, detail="Integration not found")

    try:
        rows, pagination_meta = await messages.get_message_history(
            integration_id, page_size=page_size, before=page_before, chat_id=chat_id
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    filters = f"&chat_id={chat_id}" if chat_id else ""
    base_url = str(request.url).split("?")[0]
    links = PaginationLinks(first=f"{base_url}?page[size]={page_size}{filters}")

    if pagination_meta.has_next and rows:
        oldest = rows[-1]
        next_cursor = encode_cursor(oldest.created_at, str(oldest.id))
        links.next = f"{base_url}?page[before]={next_cursor}&page[size]={page_size}{filters}"

    return JSONAPIListResponse(
        data=[_message_resource(m) for m in rows],
        meta=pagination_meta.model_dump(),
        links=links.model_dump(exclude_none=True),
    )


@router.post("/{integration_id}/messages", status_code=201)
async def send_message(
    integration_id: str,
    body: JSONAPIRequest[SendMessageRequest],
    service: IntegrationService = Depends(get_integration_service),
) -> JSONAPISingleResponse:
    """Send an operator-authored text through the integration."""
    attrs = body.data.attributes
    try:
        message = await service.send_message(integration_id, attrs.chat_id, attrs.text)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DeliveryError as exc:
        raise HTTPException(
            status_code=502, detail=f"Platform rejected the message: {exc.description}"
        ) from exc

    return JSONAPISingleResponse(data=_message_resource(message))
