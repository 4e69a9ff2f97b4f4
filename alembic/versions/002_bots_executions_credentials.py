"""Bots, execution audit log, and per-account provider keys.

Revision ID: 002
Revises: 001
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | Sequence[str] | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create bots, executions and provider_credentials."""

    op.create_table(
        "bots",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column("account_id", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), server_default="inactive", nullable=False),
        sa.Column("model_provider", sa.String(50), server_default="openai", nullable=False),
        sa.Column("model_name", sa.String(100), server_default="gpt-4o", nullable=False),
        sa.Column("temperature", sa.Float, nullable=True),
        sa.Column("system_prompt", sa.Text, nullable=True),
        sa.Column("personality", sa.Text, server_default="", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_bots_account_id", "bots", ["account_id"])

    op.create_table(
        "executions",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "bot_id",
            UUID(as_uuid=False),
            sa.ForeignKey("bots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("account_id", sa.String(255), nullable=False),
        sa.Column(
            "integration_id",
            UUID(as_uuid=False),
            sa.ForeignKey("integrations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=False),
        sa.Column("cost", sa.Float, server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_executions_account_id", "executions", ["account_id"])

    op.create_table(
        "provider_credentials",
        sa.Column("id", UUID(as_uuid=False), primary_key=True),
        sa.Column("account_id", sa.String(255), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("api_key", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("account_id", "provider"),
    )


def downgrade() -> None:
    op.drop_table("provider_credentials")
    op.drop_index("ix_executions_account_id", table_name="executions")
    op.drop_table("executions")
    op.drop_index("ix_bots_account_id", table_name="bots")
    op.drop_table("bots")
