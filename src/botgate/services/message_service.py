"""Read access to an integration's message history for the operator API."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from botgate.models.message import Message
from botgate.schemas.pagination import PaginationMeta, decode_cursor


class MessageService:
    """Cursor-paginated message history, newest first.

    Args:
        db: Async SQLAlchemy session for database operations.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_message_history(
        self,
        integration_id: str,
        page_size: int = 50,
        before: str | None = None,
        chat_id: str | None = None,
    ) -> tuple[list[Message], PaginationMeta]:
        """Get paginated message history for an integration.

        ``before`` is an opaque cursor pointing at the oldest message of the
        current page; the next page holds messages older than it.

        Raises:
            ValueError: If ``before`` is not a valid cursor.
        """
        query = select(Message).where(Message.integration_id == integration_id)

        if chat_id:
            query = query.where(Message.chat_id == chat_id)

        if before:
            cursor_created_at, cursor_id = decode_cursor(before)
            query = query.where(
                (Message.created_at < cursor_created_at)
                | (
                    (Message.created_at == cursor_created_at)
                    & (Message.id < cursor_id)
                )
            )

        query = query.order_by(Message.created_at.desc(), Message.id.desc())
        query = query.limit(page_size + 1)

        result = await self.db.execute(query)
        messages = list(result.scalars().all())

        has_next = len(messages) > page_size
        if has_next:
            messages = messages[:page_size]

        return messages, PaginationMeta(has_next=has_next, has_prev=before is not None)
