from datetime import timedelta
from unittest.mock import Mock, patch

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from botgate.models.base import Base
from botgate.models.integration import Integration
from botgate.models.message import Message
from botgate.platforms.base import InboundUpdate, UpdateKind
from botgate.services.execution_logger import ExecutionLogger
from botgate.services.history_store import HistoryStore
from botgate.services.model_provider import ChatTurn
from conftest import BASE_TIME, make_integration


@pytest.fixture
def db():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine, tables=[Integration.__table__, Message.__table__])
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture
def integration(db):
    integration = make_integration()
    db.add(integration)
    db.commit()
    return integration


def _update(chat_id="42", message_id="7", text="hello") -> InboundUpdate:
    return InboundUpdate(
        kind=UpdateKind.MESSAGE,
        chat_id=chat_id,
        user_id="1001",
        username="ada",
        text=text,
        platform_message_id=message_id,
    )


def _add_turn(db, integration, direction, text, seconds, chat_id="42") -> Message:
    message = Message(
        integration_id=integration.id,
        platform=integration.platform,
        direction=direction,
        chat_id=chat_id,
        message_text=text,
        status="received" if direction == "incoming" else "sent",
        created_at=BASE_TIME + timedelta(seconds=seconds),
    )
    db.add(message)
    db.commit()
    return message


def _count(db) -> int:
    return db.execute(select(func.count()).select_from(Message)).scalar_one()


class TestRecentTurns:
    def test_oldest_first_bounded_and_excluding_current(self, db, integration):
        _add_turn(db, integration, "incoming", "m1", 0)
        _add_turn(db, integration, "outgoing", "r1", 1)
        _add_turn(db, integration, "incoming", "m2", 2)
        _add_turn(db, integration, "outgoing", "r2", 3)
        current = _add_turn(db, integration, "incoming", "m3", 4)

        turns = HistoryStore(db).recent_turns(
            integration.id, "42", limit=3, exclude_message_id=current.id
        )

        assert turns == [
            ChatTurn("assistant", "r1"),
            ChatTurn("user", "m2"),
            ChatTurn("assistant", "r2"),
        ]

    def test_only_the_requested_conversation(self, db, integration):
        other = make_integration()
        db.add(other)
        db.commit()
        _add_turn(db, integration, "incoming", "mine", 0)
        _add_turn(db, integration, "incoming", "other chat", 1, chat_id="43")
        _add_turn(db, other, "incoming", "other integration", 2)

        turns = HistoryStore(db).recent_turns(integration.id, "42", limit=10)

        assert turns == [ChatTurn("user", "mine")]

    def test_rows_without_text_are_skipped(self, db, integration):
        _add_turn(db, integration, "incoming", None, 0)
        _add_turn(db, integration, "incoming", "m1", 1)

        assert HistoryStore(db).recent_turns(integration.id, "42", limit=10) == [
            ChatTurn("user", "m1")
        ]

    def test_without_chat_id_no_query(self):
        db = Mock()

        assert HistoryStore(db).recent_turns("int-1", None, limit=10) == []
        db.execute.assert_not_called()


class TestRecordIncoming:
    def test_creates_row(self, db, integration):
        message = HistoryStore(db).record_incoming(integration, _update())

        assert message.id
        assert message.direction == "incoming"
        assert message.status == "received"
        assert message.integration_id == integration.id
        assert (message.chat_id, message.user_name, message.message_text) == ("42", "ada", "hello")
        assert _count(db) == 1

    def test_redelivery_reuses_existing_row(self, db, integration):
        store = HistoryStore(db)
        first = store.record_incoming(integration, _update())

        again = store.record_incoming(integration, _update())

        assert again.id == first.id
        assert _count(db) == 1

    def test_same_message_id_in_another_chat_is_a_new_row(self, db, integration):
        store = HistoryStore(db)
        from_a = store.record_incoming(integration, _update(chat_id="100", message_id="1", text="hi from A"))

        from_b = store.record_incoming(integration, _update(chat_id="200", message_id="1", text="hi from B"))

        assert from_b.id != from_a.id
        assert (from_b.chat_id, from_b.message_text) == ("200", "hi from B")
        assert _count(db) == 2

    def test_concurrent_insert_returns_the_winning_row(self, db, integration):
        store = HistoryStore(db)
        winner = store.record_incoming(integration, _update())
        real_lookup = store._find_incoming
        lookups = []

        def miss_first(*args):
            lookups.append(args)
            return None if len(lookups) == 1 else real_lookup(*args)

        with patch.object(store, "_find_incoming", side_effect=miss_first):
            message = store.record_incoming(integration, _update())

        assert message.id == winner.id
        assert len(lookups) == 2
        assert _count(db) == 1


class TestReplies:
    def test_outgoing_row_links_to_incoming(self, db, integration):
        store = HistoryStore(db)
        incoming = store.record_incoming(integration, _update())

        assert store.has_reply(incoming.id) is False

        outgoing = store.record_outgoing(
            integration, "42", "hi there", "99", reply_to_message_id=incoming.id
        )

        assert outgoing.direction == "outgoing"
        assert outgoing.status == "sent"
        assert outgoing.platform_message_id == "99"
        assert outgoing.reply_to_message_id == incoming.id
        assert store.has_reply(incoming.id) is True

    def test_unlinked_outgoing_is_not_a_reply(self, db, integration):
        store = HistoryStore(db)
        incoming = store.record_incoming(integration, _update())

        store.record_outgoing(integration, "42", "operator note", "100")

        assert store.has_reply(incoming.id) is False


class TestExecutionLogger:
    def test_records_execution(self):
        db = Mock()

        execution = ExecutionLogger(db).record(
            bot_id="bot-1",
            account_id="acct-1",
            integration_id="int-1",
            status="success",
            error_message=None,
            duration_ms=120,
        )

        assert execution.status == "success"
        assert execution.cost == 0
        db.add.assert_called_once_with(execution)
        db.commit.assert_called_once()

    def test_failure_never_raises(self):
        db = Mock()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("db down"))

        result = ExecutionLogger(db).record(
            bot_id="bot-1",
            account_id="acct-1",
            integration_id=None,
            status="error",
            error_message="boom",
            duration_ms=5,
        )

        assert result is None
        db.rollback.assert_called_once()
