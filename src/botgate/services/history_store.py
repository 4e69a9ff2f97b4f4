"""Conversation history persistence for the worker.

Messages are immutable: incoming rows are written once per chat and
platform message id, outgoing rows once per successful send.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from botgate.models.integration import Integration
from botgate.models.message import Message, MessageDirection, MessageStatus
from botgate.platforms.base import InboundUpdate
from botgate.services.model_provider import ChatTurn

logger = logging.getLogger(__name__)


class HistoryStore:
    """Sync message store used by the pipeline, orchestrator and dispatcher.

    Args:
        db: Sync SQLAlchemy session for database operations.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def recent_turns(
        self,
        integration_id: str,
        chat_id: str | None,
        limit: int,
        exclude_message_id: str | None = None,
    ) -> list[ChatTurn]:
        """Return up to ``limit`` most recent turns of a chat, oldest first.

        Args:
            integration_id: UUID of the integration.
            chat_id: Platform chat id; without one there is no history.
            limit: Maximum number of turns.
            exclude_message_id: Message row to leave out, normally the
                incoming message currently being answered.
        """
        if not chat_id or limit <= 0:
            return []

        query = select(Message).where(
            Message.integration_id == integration_id,
            Message.chat_id == chat_id,
        )
        if exclude_message_id:
            query = query.where(Message.id != exclude_message_id)
        query = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)

        rows = list(self.db.execute(query).scalars().all())
        rows.reverse()
        return [
            ChatTurn(
                role="user" if row.direction == MessageDirection.INCOMING.value else "assistant",
                content=row.message_text,
            )
            for row in rows
            if row.message_text
        ]

    def record_incoming(self, integration: Integration, update: InboundUpdate) -> Message:
        """Persist an incoming message, reusing the row on redelivery.

        A job retried after a failed send decodes the same update again;
        the chat and platform message id identify the row written the
        first time. Telegram numbers messages per chat, so the id alone
        is not enough.
        """
        chat_id = str(update.chat_id)
        if update.platform_message_id:
            existing = self._find_incoming(integration.id, chat_id, update.platform_message_id)
            if existing is not None:
                logger.info(
                    "Incoming message %s in chat %s for integration %s already recorded",
                    update.platform_message_id,
                    chat_id,
                    integration.id,
                )
                return existing

        message = Message(
            integration_id=integration.id,
            platform=integration.platform,
            direction=MessageDirection.INCOMING.value,
            chat_id=chat_id,
            user_id_external=update.user_id,
            user_name=update.username,
            message_text=update.text,
            platform_message_id=update.platform_message_id,
            status=MessageStatus.RECEIVED.value,
        )
        try:
            return self._save(message)
        except IntegrityError:
            # a concurrent redelivery inserted the same message first
            self.db.rollback()
            existing = (
                self._find_incoming(integration.id, chat_id, update.platform_message_id)
                if update.platform_message_id
                else None
            )
            if existing is None:
                raise
            return existing

    def has_reply(self, message_id: str) -> bool:
        """Whether an outgoing reply to the given incoming row was already sent."""
        reply_id = self.db.execute(
            select(Message.id)
            .where(
                Message.reply_to_message_id == message_id,
                Message.direction == MessageDirection.OUTGOING.value,
            )
            .limit(1)
        ).scalar_one_or_none()
        return reply_id is not None

    def record_outgoing(
        self,
        integration: Integration,
        chat_id: str,
        text: str,
        platform_message_id: str | None,
        reply_to_message_id: str | None = None,
    ) -> Message:
        message = Message(
            integration_id=integration.id,
            platform=integration.platform,
            direction=MessageDirection.OUTGOING.value,
            chat_id=str(chat_id),
            message_text=text,
            platform_message_id=platform_message_id,
            reply_to_message_id=reply_to_message_id,
            status=MessageStatus.SENT.value,
        )
        return self._save(message)

    def _find_incoming(
        self, integration_id: str, chat_id: str, platform_message_id: str
    ) -> Message | None:
        return self.db.execute(
            select(Message).where(
                Message.integration_id == integration_id,
                Message.direction == MessageDirection.INCOMING.value,
                Message.chat_id == chat_id,
                Message.platform_message_id == platform_message_id,
            )
        ).scalar_one_or_none()

    def _save(self, message: Message) -> Message:
        self.db.add(message)
        self.db.flush()
        self.db.commit()
        self.db.refresh(message)
        return message
