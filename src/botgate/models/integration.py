import enum

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from botgate.models.base import AuditMixin, Base, UUIDPrimaryKeyMixin


class Platform(str, enum.Enum):
    """External chat platforms an integration can connect to."""

    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"


class IntegrationStatus(str, enum.Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class Integration(Base, UUIDPrimaryKeyMixin, AuditMixin):
    """A connection between one account and one external chat platform.

    Only the columns for the integration's own platform are populated.
    Credentials are opaque here; they are handed to the matching platform
    adapter and never returned by the API.
    """

    __tablename__ = "integrations"

    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), server_default=IntegrationStatus.CONNECTED.value, nullable=False
    )
    webhook_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    webhook_secret: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Telegram-specific
    bot_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    telegram_bot_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telegram_bot_username: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # WhatsApp-specific
    whatsapp_phone_number_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    whatsapp_business_account_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    whatsapp_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    whatsapp_verify_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    whatsapp_display_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    @property
    def canonical_identity(self) -> str | None:
        """The platform-side identity: telegram bot id or whatsapp phone-number id."""
        if self.platform == Platform.TELEGRAM.value:
            return self.telegram_bot_id
        return self.whatsapp_phone_number_id
