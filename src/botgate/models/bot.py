from sqlalchemy import Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from botgate.models.base import AuditMixin, Base, UUIDPrimaryKeyMixin


class Bot(Base, UUIDPrimaryKeyMixin, AuditMixin):
    """AI persona owned by an account.

    Written by the dashboard; the message pipeline only reads it.
    """

    __tablename__ = "bots"

    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(50), server_default="inactive", nullable=False)
    model_provider: Mapped[str] = mapped_column(
        String(50), server_default="openai", nullable=False
    )
    model_name: Mapped[str] = mapped_column(String(100), server_default="gpt-4o", nullable=False)
    temperature: Mapped[float | None] = mapped_column(Float, nullable=True)
    system_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    personality: Mapped[str] = mapped_column(Text, server_default="", nullable=False)
