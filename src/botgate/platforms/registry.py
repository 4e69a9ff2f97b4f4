"""Maps an integration's platform to the adapter class that serves it."""

from __future__ import annotations

from typing import Callable

from botgate.config import Settings, get_settings
from botgate.models.integration import Integration, Platform
from botgate.platforms.base import PlatformAdapter
from botgate.platforms.telegram import TelegramAdapter
from botgate.platforms.whatsapp import WhatsAppAdapter

AdapterFactory = Callable[[Integration, Settings], PlatformAdapter]


def _telegram(integration: Integration, settings: Settings) -> PlatformAdapter:
    return TelegramAdapter(
        integration.bot_token or "",
        api_base=settings.telegram_api_base,
        timeout=settings.platform_http_timeout,
    )


def _whatsapp(integration: Integration, settings: Settings) -> PlatformAdapter:
    return WhatsAppAdapter(
        integration.whatsapp_phone_number_id or "",
        integration.whatsapp_access_token or "",
        verify_token=integration.whatsapp_verify_token,
        graph_base=settings.whatsapp_graph_base,
        timeout=settings.platform_http_timeout,
    )


ADAPTER_FACTORIES: dict[Platform, AdapterFactory] = {
    Platform.TELEGRAM: _telegram,
    Platform.WHATSAPP: _whatsapp,
}


def adapter_for(integration: Integration, settings: Settings | None = None) -> PlatformAdapter:
    """Build the adapter for an integration from its stored credentials.

    Raises:
        ValueError: If the integration's platform has no adapter.
    """
    try:
        factory = ADAPTER_FACTORIES[Platform(integration.platform)]
    except (ValueError, KeyError) as exc:
        raise ValueError(f"Unsupported platform: {integration.platform}") from exc
    return factory(integration, settings or get_settings())
