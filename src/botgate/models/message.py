import enum

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from botgate.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class MessageDirection(str, enum.Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class MessageStatus(str, enum.Enum):
    RECEIVED = "received"
    SENT = "sent"
    FAILED = "failed"


class Message(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """One immutable turn of a platform conversation.

    Conversation order is creation order; rows are never updated and only
    disappear when their integration is deleted.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation", "integration_id", "chat_id", "created_at"),
        # platform message ids are only unique within one chat
        Index(
            "uq_messages_platform_message",
            "integration_id",
            "direction",
            "chat_id",
            "platform_message_id",
            unique=True,
        ),
    )

    integration_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("integrations.id", ondelete="CASCADE"),
        nullable=False,
    )
    platform: Mapped[str] = mapped_column(String(50), nullable=False)
    direction: Mapped[str] = mapped_column(String(20), nullable=False)
    chat_id: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id_external: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    message_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    platform_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reply_to_message_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("messages.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), server_default=MessageStatus.RECEIVED.value, nullable=False
    )
