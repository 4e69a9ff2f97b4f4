from sqlalchemy import Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from botgate.models.base import Base, CreatedAtMixin, UUIDPrimaryKeyMixin


class Execution(Base, UUIDPrimaryKeyMixin, CreatedAtMixin):
    """Audit record of one AI provider invocation attempt."""

    __tablename__ = "executions"

    bot_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("bots.id", ondelete="CASCADE"), nullable=False
    )
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    integration_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("integrations.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    cost: Mapped[float] = mapped_column(Float, server_default="0", nullable=False)
