"""Platform adapter abstraction and the canonical update shape.

Every chat platform is wrapped by a ``PlatformAdapter`` exposing the same
capability set: validate credentials, decode webhook payloads into
``InboundUpdate`` values, send text, and tear down platform-side state.
The worker only ever talks to this interface; which subclass it gets is
decided once per integration by ``botgate.platforms.registry``.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from botgate.models.integration import Platform

# Both platforms cap a single text message at 4096 characters
MAX_TEXT_LENGTH = 4096


class UpdateKind(str, enum.Enum):
    MESSAGE = "message"
    EDITED = "edited"
    CALLBACK = "callback"
    STATUS = "status"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class InboundUpdate:
    """Platform-agnostic view of one inbound webhook event.

    Only ``kind == MESSAGE`` with both a chat id and non-blank text is
    actionable; every other combination is a no-op for the worker.
    """

    kind: UpdateKind
    chat_id: str | None = None
    user_id: str | None = None
    username: str | None = None
    text: str | None = None
    platform_message_id: str | None = None

    @property
    def is_actionable(self) -> bool:
        return (
            self.kind is UpdateKind.MESSAGE
            and bool(self.chat_id)
            and bool(self.text and self.text.strip())
        )


@dataclass(frozen=True)
class CredentialCheck:
    """Outcome of validating credentials against the live platform API."""

    valid: bool
    identity: str | None = None
    display_name: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class SendResult:
    platform_message_id: str | None


def split_text(text: str, limit: int = MAX_TEXT_LENGTH) -> list[str]:
    """Split text into platform-sized chunks, preferring newline boundaries."""
    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        cut = remaining.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(remaining[:cut])
        remaining = remaining[cut:].lstrip("\n")
    if remaining or not chunks:
        chunks.append(remaining)
    return chunks


class PlatformAdapter(ABC):
    """Base interface for one external chat platform.

    Adapters are constructed from an integration's credentials and perform
    blocking HTTP through ``httpx.Client``; they run inside sync Celery
    workers, or in a threadpool when called from the API.

    Args:
        timeout: Per-request timeout in seconds for platform HTTP calls.
        transport: Optional httpx transport override (tests use
            ``httpx.MockTransport``).
    """

    platform: Platform

    def __init__(
        self,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self._timeout, transport=self._transport)

    @abstractmethod
    def validate_credentials(self) -> CredentialCheck:
        """Round-trip with the platform to prove the credentials are live and ours.

        Never raises: network failures and rejections come back as
        ``CredentialCheck(valid=False, reason=...)``.
        """
        ...

    @abstractmethod
    def decode_update(self, raw_payload: Any) -> list[InboundUpdate]:
        """Turn a raw webhook payload into canonical updates.

        Pure function of ``raw_payload``. Platforms that batch events
        return several updates; the caller handles each independently.

        Raises:
            DecodeError: If the payload does not match the platform schema.
        """
        ...

    @abstractmethod
    def send(self, chat_id: str | int, text: str) -> SendResult:
        """Send a text message to a chat.

        Raises:
            DeliveryError: If the platform rejects the send or is unreachable.
        """
        ...

    def mark_as_read(self, platform_message_id: str) -> bool:
        """Send a read receipt for an inbound message, where the platform has them.

        Best effort; the default is a no-op.
        """
        return False

    @abstractmethod
    def teardown(self) -> bool:
        """Best-effort removal of platform-side state (e.g. webhook subscription).

        Failures are logged and reported as ``False``, never raised.
        """
        ...
