"""Shared fixtures and in-memory fakes for botgate tests."""

from __future__ import annotations

import itertools
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

import httpx
import pytest

from botgate.errors import DeliveryError, ProviderError, ProviderUnavailable
from botgate.models.bot import Bot
from botgate.models.integration import Integration, IntegrationStatus, Platform
from botgate.models.message import Message, MessageDirection, MessageStatus
from botgate.platforms.base import CredentialCheck, InboundUpdate, PlatformAdapter, SendResult
from botgate.services.dispatcher import OutboundDispatcher
from botgate.services.model_provider import ChatTurn
from botgate.services.orchestrator import ReplyOrchestrator
from botgate.services.pipeline import InboundPipeline

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_integration(platform: str = Platform.TELEGRAM.value, /, **overrides: Any) -> Integration:
    values: dict[str, Any] = {
        "id": str(uuid4()),
        "account_id": "acct-1",
        "platform": platform,
        "name": "@test_bot" if platform == Platform.TELEGRAM.value else "WhatsApp: +1 555 0100",
        "status": IntegrationStatus.CONNECTED.value,
        "webhook_secret": "s3cret" if platform == Platform.TELEGRAM.value else None,
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    if platform == Platform.TELEGRAM.value:
        values.update(bot_token="123:ABC", telegram_bot_id="123", telegram_bot_username="test_bot")
    else:
        values.update(
            whatsapp_phone_number_id="1055",
            whatsapp_access_token="EAAG-token",
            whatsapp_verify_token="verify-me",
            whatsapp_display_number="+1 555 0100",
        )
    values.update(overrides)
    return Integration(**values)


def make_bot(**overrides: Any) -> Bot:
    values: dict[str, Any] = {
        "id": str(uuid4()),
        "account_id": "acct-1",
        "name": "Helper",
        "status": "active",
        "model_provider": "openai",
        "model_name": "gpt-4o",
        "temperature": 0.3,
        "system_prompt": "You are a helpful assistant.",
        "personality": "",
    }
    values.update(overrides)
    return Bot(**values)


def telegram_update(text: str | None = "hello", chat_id: int = 42, message_id: int = 7) -> dict:
    message: dict[str, Any] = {
        "message_id": message_id,
        "date": 1760000000,
        "chat": {"id": chat_id, "type": "private"},
        "from": {"id": 1001, "is_bot": False, "first_name": "Ada", "username": "ada"},
    }
    if text is not None:
        message["text"] = text
    return {"update_id": 555, "message": message}


def whatsapp_payload(messages: list[dict], contacts: list[dict] | None = None, statuses=None) -> dict:
    value: dict[str, Any] = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "15550100", "phone_number_id": "1055"},
        "contacts": contacts or [],
        "messages": messages,
    }
    if statuses is not None:
        value["statuses"] = statuses
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA", "changes": [{"field": "messages", "value": value}]}],
    }


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode(),
                          headers={"content-type": "application/json"})


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_handler)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeAdapter(PlatformAdapter):
    """Adapter that decodes through a real adapter but records sends."""

    def __init__(
        self,
        decoder: PlatformAdapter,
        send_failures: int = 0,
        failing_attempts: tuple[int, ...] = (),
    ) -> None:
        super().__init__()
        self.platform = decoder.platform
        self._decoder = decoder
        self.send_failures = send_failures
        self.failing_attempts = set(failing_attempts)
        self.attempts = 0
        self.sent: list[tuple[str, str]] = []
        self.read_receipts: list[str] = []
        self.torn_down = False

    def validate_credentials(self) -> CredentialCheck:
        return CredentialCheck(valid=True, identity="fake")

    def decode_update(self, raw_payload: Any) -> list[InboundUpdate]:
        return self._decoder.decode_update(raw_payload)

    def send(self, chat_id, text: str) -> SendResult:
        self.attempts += 1
        if self.attempts in self.failing_attempts:
            raise DeliveryError("Too Many Requests: retry after 1", 429)
        if self.send_failures > 0:
            self.send_failures -= 1
            raise DeliveryError("Too Many Requests: retry after 1", 429)
        self.sent.append((str(chat_id), text))
        return SendResult(platform_message_id=f"out-{len(self.sent)}")

    def mark_as_read(self, platform_message_id: str) -> bool:
        self.read_receipts.append(platform_message_id)
        return True

    def teardown(self) -> bool:
        self.torn_down = True
        return True


class FakeHistory:
    """Message store backed by a list, in insertion order."""

    def __init__(self) -> None:
        self.messages: list[Message] = []
        self._clock = itertools.count()

    def _append(self, message: Message) -> Message:
        message.id = str(uuid4())
        message.created_at = BASE_TIME + timedelta(seconds=next(self._clock))
        self.messages.append(message)
        return message

    @property
    def incoming(self) -> list[Message]:
        return [m for m in self.messages if m.direction == MessageDirection.INCOMING.value]

    @property
    def outgoing(self) -> list[Message]:
        return [m for m in self.messages if m.direction == MessageDirection.OUTGOING.value]

    def recent_turns(self, integration_id, chat_id, limit, exclude_message_id=None) -> list[ChatTurn]:
        if not chat_id:
            return []
        rows = [
            m
            for m in self.messages
            if m.integration_id == integration_id
            and m.chat_id == chat_id
            and m.id != exclude_message_id
        ][-limit:]
        return [
            ChatTurn(
                role="user" if m.direction == MessageDirection.INCOMING.value else "assistant",
                content=m.message_text,
            )
            for m in rows
            if m.message_text
        ]

    def record_incoming(self, integration: Integration, update: InboundUpdate) -> Message:
        for existing in self.incoming:
            if (
                update.platform_message_id
                and existing.integration_id == integration.id
                and existing.chat_id == str(update.chat_id)
                and existing.platform_message_id == update.platform_message_id
            ):
                return existing
        return self._append(
            Message(
                integration_id=integration.id,
                platform=integration.platform,
                direction=MessageDirection.INCOMING.value,
                chat_id=str(update.chat_id),
                user_id_external=update.user_id,
                user_name=update.username,
                message_text=update.text,
                platform_message_id=update.platform_message_id,
                status=MessageStatus.RECEIVED.value,
            )
        )

    def has_reply(self, message_id: str) -> bool:
        return any(m.reply_to_message_id == message_id for m in self.outgoing)

    def record_outgoing(
        self, integration, chat_id, text, platform_message_id, reply_to_message_id=None
    ) -> Message:
        return self._append(
            Message(
                integration_id=integration.id,
                platform=integration.platform,
                direction=MessageDirection.OUTGOING.value,
                chat_id=str(chat_id),
                message_text=text,
                platform_message_id=platform_message_id,
                reply_to_message_id=reply_to_message_id,
                status=MessageStatus.SENT.value,
            )
        )


class FakeExecutions:
    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def record(self, **kwargs: Any) -> dict[str, Any]:
        self.records.append(kwargs)
        return kwargs


class FakeBots:
    def __init__(self, *bots: Bot) -> None:
        self.bots = list(bots)

    def active_bot_for(self, account_id: str) -> Bot | None:
        for bot in self.bots:
            if bot.account_id == account_id and bot.status == "active":
                return bot
        return None


class FakeProvider:
    """Chat provider returning a canned reply, or raising ``error``."""

    def __init__(self, reply: str = "hi there", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def complete(self, model_name, temperature, system_prompt, history, prompt) -> str:
        self.calls.append(
            {
                "model_name": model_name,
                "temperature": temperature,
                "system_prompt": system_prompt,
                "history": list(history),
                "prompt": prompt,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply


class FakeResolver:
    def __init__(self, provider: FakeProvider | None = None) -> None:
        self.provider = provider
        self.requests: list[tuple[str, str]] = []

    def resolve(self, account_id: str, provider: str) -> FakeProvider:
        self.requests.append((account_id, provider))
        if self.provider is None:
            raise ProviderUnavailable(f"No API key configured for provider '{provider}'")
        return self.provider


class FakeIntegrations:
    def __init__(self, *integrations: Integration) -> None:
        self.by_id = {i.id: i for i in integrations}

    def get_integration(self, integration_id: str) -> Integration | None:
        return self.by_id.get(integration_id)


class PipelineHarness:
    """A fully wired pipeline over in-memory fakes."""

    def __init__(
        self,
        integration: Integration,
        decoder: PlatformAdapter,
        provider: FakeProvider | None = None,
        bots: tuple[Bot, ...] | None = None,
        send_failures: int = 0,
        failing_attempts: tuple[int, ...] = (),
    ) -> None:
        self.integration = integration
        self.adapter = FakeAdapter(
            decoder, send_failures=send_failures, failing_attempts=failing_attempts
        )
        self.history = FakeHistory()
        self.executions = FakeExecutions()
        self.provider = provider if provider is not None else FakeProvider()
        self.resolver = FakeResolver(self.provider)
        self.orchestrator = ReplyOrchestrator(
            bots=FakeBots(*(bots if bots is not None else (make_bot(),))),
            history=self.history,
            executions=self.executions,
            providers=self.resolver,
            history_limit=10,
        )
        self.pipeline = InboundPipeline(
            integrations=FakeIntegrations(integration),
            history=self.history,
            orchestrator=self.orchestrator,
            dispatcher=OutboundDispatcher(self.history),
            adapter_factory=lambda _integration: self.adapter,
        )

    def job(self, raw_payload: Any) -> dict[str, Any]:
        return {
            "integration_id": self.integration.id,
            "platform": self.integration.platform,
            "raw_payload": raw_payload,
        }


@pytest.fixture
def provider_error() -> ProviderError:
    return ProviderError("openai call failed: upstream 500")
