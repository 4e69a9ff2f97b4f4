"""Integrations and platform messages.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create integrations and messages."""

    op.create_table(
        "integrations",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column("account_id", sa.String(255), nullable=False),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), server_default="connected", nullable=False),
        sa.Column("webhook_url", sa.Text, nullable=True),
        sa.Column("webhook_secret", sa.Text, nullable=True),
        sa.Column("bot_token", sa.Text, nullable=True),
        sa.Column("telegram_bot_id", sa.String(255), nullable=True),
        sa.Column("telegram_bot_username", sa.String(255), nullable=True),
        sa.Column("whatsapp_phone_number_id", sa.String(255), nullable=True),
        sa.Column("whatsapp_business_account_id", sa.String(255), nullable=True),
        sa.Column("whatsapp_access_token", sa.Text, nullable=True),
        sa.Column("whatsapp_verify_token", sa.String(255), nullable=True),
        sa.Column("whatsapp_display_number", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_integrations_account_id", "integrations", ["account_id"])

    op.create_table(
        "messages",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "integration_id",
            UUID(as_uuid=False),
            sa.ForeignKey("integrations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("direction", sa.String(20), nullable=False),
        sa.Column("chat_id", sa.String(255), nullable=False),
        sa.Column("user_id_external", sa.String(255), nullable=True),
        sa.Column("user_name", sa.String(255), nullable=True),
        sa.Column("message_text", sa.Text, nullable=True),
        sa.Column("platform_message_id", sa.String(255), nullable=True),
        sa.Column(
            "reply_to_message_id",
            UUID(as_uuid=False),
            sa.ForeignKey("messages.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), server_default="received", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        "ix_messages_conversation", "messages", ["integration_id", "chat_id", "created_at"]
    )
    op.create_index(
        "uq_messages_platform_message",
        "messages",
        ["integration_id", "direction", "chat_id", "platform_message_id"],
        unique=True,
    )


def downgrade() -> None:
    """Drop messages, then integrations."""
    op.drop_index("uq_messages_platform_message", table_name="messages")
    op.drop_index("ix_messages_conversation", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_integrations_account_id", table_name="integrations")
    op.drop_table("integrations")
