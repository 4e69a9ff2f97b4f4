"""Integration setup and lifecycle service.

Setup validates credentials against the live platform before anything is
stored. Platform adapters are blocking (they are shared with the Celery
workers), so every adapter call here goes through ``run_in_threadpool``.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, cast
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from botgate.config import Settings
from botgate.errors import IntegrationSetupError, WebhookRegistrationError
from botgate.models.integration import Integration, IntegrationStatus, Platform
from botgate.models.message import Message, MessageDirection, MessageStatus
from botgate.platforms.base import PlatformAdapter
from botgate.platforms.registry import adapter_for
from botgate.platforms.telegram import TelegramAdapter
from botgate.schemas.pagination import PaginationMeta, decode_cursor

logger = logging.getLogger(__name__)


class IntegrationService:
    """Service for integration setup, listing, lifecycle and manual sends.

    Args:
        db: Async SQLAlchemy session for database operations.
        settings: Application settings (public base URL, platform origins).
        adapter_factory: Builds a platform adapter from an integration;
            defaults to the platform registry.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        adapter_factory: Callable[[Integration], PlatformAdapter] | None = None,
    ) -> None:
        self.db = db
        self.settings = settings
        self.adapter_factory = adapter_factory or (
            lambda integration: adapter_for(integration, settings)
        )

    def webhook_url_for(self, integration_id: str) -> str | None:
        """Public URL the platform should call, or None when not configured."""
        if not self.settings.public_base_url:
            return None
        return f"{self.settings.public_base_url.rstrip('/')}/webhook/{integration_id}"

    async def setup_telegram(self, account_id: str, bot_token: str) -> Integration:
        """Validate a bot token, register our webhook, and store the integration.

        Raises:
            IntegrationSetupError: If Telegram rejects the token.
            WebhookRegistrationError: If Telegram refuses the webhook URL.
        """
        integration = Integration(
            id=str(uuid4()),
            account_id=account_id,
            platform=Platform.TELEGRAM.value,
            name="Telegram bot",
            status=IntegrationStatus.CONNECTED.value,
            bot_token=bot_token,
        )
        adapter = cast(TelegramAdapter, self.adapter_factory(integration))

        check = await run_in_threadpool(adapter.validate_credentials)
        if not check.valid:
            raise IntegrationSetupError(check.reason or "Invalid Telegram bot token")

        integration.telegram_bot_id = check.identity
        integration.telegram_bot_username = (check.display_name or "").lstrip("@") or None
        integration.name = check.display_name or integration.name
        integration.webhook_secret = secrets.token_urlsafe(32)

        webhook_url = self.webhook_url_for(integration.id)
        if webhook_url:
            await run_in_threadpool(
                adapter.register_webhook, webhook_url, integration.webhook_secret
            )
            integration.webhook_url = webhook_url
        else:
            logger.warning(
                "public_base_url is not set; webhook for integration %s must be registered manually",
                integration.id,
            )

        self.db.add(integration)
        await self.db.commit()
        await self.db.refresh(integration)
        logger.info(
            "Connected Telegram bot %s for account %s as integration %s",
            integration.name,
            account_id,
            integration.id,
        )
        return integration

    async def setup_whatsapp(
        self,
        account_id: str,
        phone_number_id: str,
        access_token: str,
        verify_token: str | None = None,
        business_account_id: str | None = None,
        app_secret: str | None = None,
    ) -> Integration:
        """Validate Cloud API credentials and store the integration.

        Raises:
            IntegrationSetupError: If the token cannot read the phone number.
        """
        integration = Integration(
            id=str(uuid4()),
            account_id=account_id,
            platform=Platform.WHATSAPP.value,
            name="WhatsApp",
            status=IntegrationStatus.CONNECTED.value,
            whatsapp_phone_number_id=phone_number_id,
            whatsapp_access_token=access_token,
            whatsapp_business_account_id=business_account_id,
            whatsapp_verify_token=verify_token or secrets.token_urlsafe(24),
            webhook_secret=app_secret,
        )
        adapter = self.adapter_factory(integration)

        check = await run_in_threadpool(adapter.validate_credentials)
        if not check.valid:
            raise IntegrationSetupError(check.reason or "Invalid WhatsApp credentials")

        integration.whatsapp_display_number = check.display_name
        if check.display_name:
            integration.name = f"WhatsApp: {check.display_name}"
        integration.webhook_url = self.webhook_url_for(integration.id)

        self.db.add(integration)
        await self.db.commit()
        await self.db.refresh(integration)
        logger.info(
            "Connected WhatsApp number %s for account %s as integration %s",
            phone_number_id,
            account_id,
            integration.id,
        )
        return integration

    async def list_integrations(
        self,
        page_size: int = 20,
        after: str | None = None,
        account_id: str | None = None,
        platform: str | None = None,
    ) -> tuple[list[Integration], PaginationMeta]:
        """List integrations with cursor-based pagination, oldest first."""
        query = select(Integration)

        if account_id:
            query = query.where(Integration.account_id == account_id)
        if platform:
            query = query.where(Integration.platform == platform)

        if after:
            cursor_created_at, cursor_id = decode_cursor(after)
            query = query.where(
                (Integration.created_at > cursor_created_at)
                | (
                    (Integration.created_at == cursor_created_at)
                    & (Integration.id > cursor_id)
                )
            )

        query = query.order_by(Integration.created_at.asc(), Integration.id.asc())
        query = query.limit(page_size + 1)

        result = await self.db.execute(query)
        integrations = list(result.scalars().all())

        has_next = len(integrations) > page_size
        if has_next:
            integrations = integrations[:page_size]

        return integrations, PaginationMeta(has_next=has_next, has_prev=after is not None)

    async def get_integration(self, integration_id: str) -> Integration | None:
        result = await self.db.execute(
            select(Integration).where(Integration.id == integration_id)
        )
        return result.scalar_one_or_none()

    async def _require(self, integration_id: str) -> Integration:
        integration = await self.get_integration(integration_id)
        if integration is None:
            raise ValueError(f"Integration not found: {integration_id}")
        return integration

    async def disconnect(self, integration_id: str) -> Integration:
        """Tear down platform-side state and mark the integration disconnected.

        Raises:
            ValueError: If the integration is not found.
        """
        integration = await self._require(integration_id)
        adapter = self.adapter_factory(integration)
        if not await run_in_threadpool(adapter.teardown):
            logger.warning("Teardown failed while disconnecting integration %s", integration_id)

        integration.status = IntegrationStatus.DISCONNECTED.value
        await self.db.commit()
        await self.db.refresh(integration)
        return integration

    async def reconnect(self, integration_id: str) -> Integration:
        """Re-validate stored credentials and resume processing.

        Telegram bots get their webhook registered again with a fresh
        secret. Invalid credentials leave the integration in ``error``.

        Raises:
            ValueError: If the integration is not found.
        """
        integration = await self._require(integration_id)
        adapter = self.adapter_factory(integration)

        check = await run_in_threadpool(adapter.validate_credentials)
        if not check.valid:
            logger.warning(
                "Reconnect of integration %s failed validation: %s",
                integration_id,
                check.reason,
            )
            integration.status = IntegrationStatus.ERROR.value
            await self.db.commit()
            await self.db.refresh(integration)
            return integration

        if integration.platform == Platform.TELEGRAM.value:
            webhook_url = self.webhook_url_for(integration.id)
            if webhook_url:
                secret = secrets.token_urlsafe(32)
                try:
                    await run_in_threadpool(
                        cast(TelegramAdapter, adapter).register_webhook, webhook_url, secret
                    )
                except WebhookRegistrationError as exc:
                    logger.warning(
                        "Webhook re-registration failed for integration %s: %s",
                        integration_id,
                        exc,
                    )
                    integration.status = IntegrationStatus.ERROR.value
                    await self.db.commit()
                    await self.db.refresh(integration)
                    return integration
                integration.webhook_url = webhook_url
                integration.webhook_secret = secret

        integration.status = IntegrationStatus.CONNECTED.value
        await self.db.commit()
        await self.db.refresh(integration)
        return integration

    async def delete_integration(self, integration_id: str) -> None:
        """Best-effort teardown, then hard-delete (messages cascade).

        Raises:
            ValueError: If the integration is not found.
        """
        integration = await self._require(integration_id)
        adapter = self.adapter_factory(integration)
        if not await run_in_threadpool(adapter.teardown):
            logger.warning(
                "Teardown failed for integration %s; deleting anyway", integration_id
            )

        await self.db.delete(integration)
        await self.db.commit()

    async def send_message(self, integration_id: str, chat_id: str, text: str) -> Message:
        """Send an operator-authored message and record it as outgoing.

        Raises:
            ValueError: If the integration is not found.
            DeliveryError: If the platform rejects the send.
        """
        integration = await self._require(integration_id)
        adapter = self.adapter_factory(integration)
        result = await run_in_threadpool(adapter.send, chat_id, text)

        message = Message(
            integration_id=integration.id,
            platform=integration.platform,
            direction=MessageDirection.OUTGOING.value,
            chat_id=str(chat_id),
            message_text=text,
            platform_message_id=result.platform_message_id,
            status=MessageStatus.SENT.value,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        return message

