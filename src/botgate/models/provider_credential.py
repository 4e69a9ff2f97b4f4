from sqlalchemy import String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from botgate.models.base import AuditMixin, Base, UUIDPrimaryKeyMixin


class ProviderCredential(Base, UUIDPrimaryKeyMixin, AuditMixin):
    """Per-account model provider API key, used when no deployment key exists."""

    __tablename__ = "provider_credentials"
    __table_args__ = (UniqueConstraint("account_id", "provider"),)

    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False)
    api_key: Mapped[str] = mapped_column(Text, nullable=False)
