from botgate.platforms.base import (
    CredentialCheck,
    InboundUpdate,
    PlatformAdapter,
    SendResult,
    UpdateKind,
)
from botgate.platforms.registry import adapter_for
from botgate.platforms.telegram import TelegramAdapter
from botgate.platforms.whatsapp import WhatsAppAdapter

__all__ = [
    "CredentialCheck",
    "InboundUpdate",
    "PlatformAdapter",
    "SendResult",
    "TelegramAdapter",
    "UpdateKind",
    "WhatsAppAdapter",
    "adapter_for",
]
