from botgate.models.base import AuditMixin, Base, CreatedAtMixin, UUIDPrimaryKeyMixin
from botgate.models.bot import Bot
from botgate.models.execution import Execution
from botgate.models.integration import Integration, IntegrationStatus, Platform
from botgate.models.message import Message, MessageDirection, MessageStatus
from botgate.models.provider_credential import ProviderCredential

__all__ = [
    "Base",
    "UUIDPrimaryKeyMixin",
    "CreatedAtMixin",
    "AuditMixin",
    "Bot",
    "Execution",
    "Integration",
    "IntegrationStatus",
    "Platform",
    "Message",
    "MessageDirection",
    "MessageStatus",
    "ProviderCredential",
]
