import pytest

from botgate.errors import DeliveryError
from botgate.models.integration import IntegrationStatus
from botgate.platforms.telegram import TelegramAdapter
from botgate.platforms.whatsapp import WhatsAppAdapter
from botgate.services.orchestrator import FALLBACK_REPLY, NO_ACTIVE_BOT_REPLY
from botgate.services.pipeline import (
    DROP_INTEGRATION_INACTIVE,
    DROP_INTEGRATION_MISSING,
    DROP_UNDECODABLE,
)
from conftest import (
    FakeProvider,
    PipelineHarness,
    make_integration,
    telegram_update,
    whatsapp_payload,
)


def _telegram_harness(**kwargs) -> PipelineHarness:
    return PipelineHarness(make_integration("telegram"), TelegramAdapter("123:ABC"), **kwargs)


def _whatsapp_harness(**kwargs) -> PipelineHarness:
    return PipelineHarness(
        make_integration("whatsapp"), WhatsAppAdapter("1055", "EAAG-token"), **kwargs
    )


class TestConcreteScenarios:
    def test_text_update_is_answered(self):
        harness = _telegram_harness(provider=FakeProvider("hi there"))

        outcome = harness.pipeline.process_job(harness.job(telegram_update("hello", chat_id=42)))

        [incoming] = harness.history.incoming
        assert (incoming.chat_id, incoming.message_text) == ("42", "hello")
        [execution] = harness.executions.records
        assert execution["status"] == "success"
        [outgoing] = harness.history.outgoing
        assert (outgoing.chat_id, outgoing.message_text) == ("42", "hi there")
        assert outgoing.status == "sent"
        assert outgoing.platform_message_id == "out-1"
        assert harness.adapter.sent == [("42", "hi there")]
        assert outcome.replies_sent == 1
        assert outcome.dropped is None

    def test_provider_failure_still_replies(self, provider_error):
        harness = _telegram_harness(provider=FakeProvider(error=provider_error))

        outcome = harness.pipeline.process_job(harness.job(telegram_update("hello", chat_id=42)))

        assert len(harness.history.incoming) == 1
        [execution] = harness.executions.records
        assert execution["status"] == "error"
        [outgoing] = harness.history.outgoing
        assert outgoing.message_text == FALLBACK_REPLY
        assert harness.adapter.sent == [("42", FALLBACK_REPLY)]
        assert outcome.replies_sent == 1


class TestNoOps:
    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_update_without_text_does_nothing(self, text):
        harness = _telegram_harness()

        outcome = harness.pipeline.process_job(harness.job(telegram_update(text)))

        assert harness.history.messages == []
        assert harness.executions.records == []
        assert harness.adapter.sent == []
        assert harness.provider.calls == []
        assert outcome.updates_seen == 1
        assert outcome.replies_sent == 0

    def test_edited_message_is_ignored(self):
        harness = _telegram_harness()
        raw = telegram_update("edited")
        raw["edited_message"] = raw.pop("message")

        harness.pipeline.process_job(harness.job(raw))

        assert harness.adapter.sent == []

    def test_whatsapp_status_notifications_are_ignored(self):
        harness = _whatsapp_harness()
        raw = whatsapp_payload(
            messages=[],
            statuses=[{"id": "wamid.X", "status": "read", "recipient_id": "15551234"}],
        )

        outcome = harness.pipeline.process_job(harness.job(raw))

        assert harness.history.messages == []
        assert outcome.updates_seen == 1


class TestTerminalDrops:
    def test_missing_integration(self):
        harness = _telegram_harness()
        job = harness.job(telegram_update())
        job["integration_id"] = "00000000-0000-0000-0000-000000000000"

        outcome = harness.pipeline.process_job(job)

        assert outcome.dropped == DROP_INTEGRATION_MISSING
        assert harness.adapter.sent == []

    def test_disconnected_integration(self):
        harness = _telegram_harness()
        harness.integration.status = IntegrationStatus.DISCONNECTED.value

        outcome = harness.pipeline.process_job(harness.job(telegram_update()))

        assert outcome.dropped == DROP_INTEGRATION_INACTIVE
        assert harness.history.messages == []

    def test_undecodable_payload(self):
        harness = _telegram_harness()

        outcome = harness.pipeline.process_job(harness.job({"not": "an update"}))

        assert outcome.dropped == DROP_UNDECODABLE
        assert harness.history.messages == []


class TestWhatsApp:
    def test_batched_messages_each_get_a_reply(self):
        harness = _whatsapp_harness(provider=FakeProvider("sure"))
        raw = whatsapp_payload(
            messages=[
                {"from": "15551234", "id": "wamid.A", "type": "text", "text": {"body": "one"}},
                {"from": "15559876", "id": "wamid.B", "type": "text", "text": {"body": "two"}},
            ],
            contacts=[{"wa_id": "15551234", "profile": {"name": "Ada"}}],
        )

        outcome = harness.pipeline.process_job(harness.job(raw))

        assert harness.adapter.sent == [("15551234", "sure"), ("15559876", "sure")]
        assert harness.adapter.read_receipts == ["wamid.A", "wamid.B"]
        assert [m.user_name for m in harness.history.incoming] == ["Ada", None]
        assert outcome.replies_sent == 2


class TestFailures:
    def test_delivery_error_propagates_after_incoming_is_recorded(self):
        harness = _telegram_harness(send_failures=1)

        with pytest.raises(DeliveryError):
            harness.pipeline.process_job(harness.job(telegram_update("hello")))

        assert len(harness.history.incoming) == 1
        assert harness.history.outgoing == []

    def test_retry_reuses_incoming_and_sends_once(self):
        harness = _telegram_harness(send_failures=1)
        job = harness.job(telegram_update("hello", message_id=7))

        with pytest.raises(DeliveryError):
            harness.pipeline.process_job(job)
        harness.pipeline.process_job(job)

        assert len(harness.history.incoming) == 1
        assert len(harness.history.outgoing) == 1
        assert harness.adapter.sent == [("42", "hi there")]

    def test_missing_bot_sends_notice(self):
        harness = _telegram_harness(bots=())

        harness.pipeline.process_job(harness.job(telegram_update("hello")))

        assert harness.adapter.sent == [("42", NO_ACTIVE_BOT_REPLY)]
        assert harness.provider.calls == []
        assert harness.executions.records == []

    def test_history_excludes_message_being_answered(self):
        harness = _telegram_harness()
        for index, text in enumerate(["m1", "m2", "m3"], start=1):
            harness.pipeline.process_job(harness.job(telegram_update(text, message_id=index)))

        last_call = harness.provider.calls[-1]
        assert last_call["prompt"] == "m3"
        assert [turn.content for turn in last_call["history"]] == [
            "m1", "hi there", "m2", "hi there"
        ]

    def test_unexpected_provider_exception_still_replies(self):
        harness = _telegram_harness(provider=FakeProvider(error=RuntimeError("sdk boom")))

        outcome = harness.pipeline.process_job(harness.job(telegram_update("hello")))

        assert harness.adapter.sent == [("42", FALLBACK_REPLY)]
        [execution] = harness.executions.records
        assert execution["status"] == "error"
        assert outcome.replies_sent == 1

    def test_batch_retry_does_not_answer_twice(self):
        harness = _whatsapp_harness(failing_attempts=(2,))
        raw = whatsapp_payload(
            messages=[
                {"from": "111", "id": "wamid.A", "type": "text", "text": {"body": "one"}},
                {"from": "222", "id": "wamid.B", "type": "text", "text": {"body": "two"}},
            ]
        )
        job = harness.job(raw)

        with pytest.raises(DeliveryError):
            harness.pipeline.process_job(job)
        outcome = harness.pipeline.process_job(job)

        assert harness.adapter.sent == [("111", "hi there"), ("222", "hi there")]
        assert [call["prompt"] for call in harness.provider.calls] == ["one", "two", "two"]
        assert len(harness.history.incoming) == 2
        assert len(harness.history.outgoing) == 2
        assert (outcome.replies_sent, outcome.already_answered) == (1, 1)


class TestConversations:
    def test_same_message_id_in_two_chats_is_two_messages(self):
        harness = _telegram_harness()

        harness.pipeline.process_job(
            harness.job(telegram_update("hi from A", chat_id=100, message_id=1))
        )
        harness.pipeline.process_job(
            harness.job(telegram_update("hi from B", chat_id=200, message_id=1))
        )

        assert [(m.chat_id, m.message_text) for m in harness.history.incoming] == [
            ("100", "hi from A"),
            ("200", "hi from B"),
        ]
        assert harness.adapter.sent == [("100", "hi there"), ("200", "hi there")]
        assert harness.provider.calls[1]["history"] == []
