from __future__ import annotations

import logging
from typing import Protocol

from botgate.models.integration import Integration
from botgate.models.message import Message
from botgate.platforms.base import PlatformAdapter

logger = logging.getLogger(__name__)


class OutgoingRecorder(Protocol):
    def record_outgoing(
        self,
        integration: Integration,
        chat_id: str,
        text: str,
        platform_message_id: str | None,
        reply_to_message_id: str | None = None,
    ) -> Message: ...


class OutboundDispatcher:
    """Sends a reply on the originating platform and records it.

    The outgoing row is written only after the platform accepted the send.
    ``DeliveryError`` from the adapter propagates so the queue can retry
    the whole job.
    """

    def __init__(self, history: OutgoingRecorder) -> None:
        self.history = history

    def dispatch(
        self,
        adapter: PlatformAdapter,
        integration: Integration,
        chat_id: str,
        text: str,
        reply_to_message_id: str | None = None,
    ) -> Message:
        result = adapter.send(chat_id, text)
        logger.info(
            "Sent reply to chat %s on %s integration %s",
            chat_id,
            integration.platform,
            integration.id,
        )
        return self.history.record_outgoing(
            integration,
            chat_id,
            text,
            result.platform_message_id,
            reply_to_message_id=reply_to_message_id,
        )
