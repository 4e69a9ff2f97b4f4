from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from botgate.models.bot import Bot

ACTIVE_BOT_STATUS = "active"


class BotDirectory:
    """Read-only lookup of the bot that answers for an account.

    Args:
        db: Sync SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def active_bot_for(self, account_id: str) -> Bot | None:
        """Return the most recently updated active bot, or None."""
        result = self.db.execute(
            select(Bot)
            .where(Bot.account_id == account_id, Bot.status == ACTIVE_BOT_STATUS)
            .order_by(Bot.updated_at.desc(), Bot.id.desc())
            .limit(1)
        )
        return result.scalars().first()
