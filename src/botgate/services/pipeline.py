"""Worker-side processing of one queued webhook job.

``InboundPipeline.process_job`` is the body of the Celery task: decode the
raw payload, and for every actionable update persist the incoming message,
ask the orchestrator for a reply, and dispatch it. Terminal conditions
(missing integration, undecodable payload) complete the job; delivery and
persistence errors propagate so the queue retries it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from botgate.config import Settings
from botgate.errors import DecodeError
from botgate.models.integration import Integration, IntegrationStatus
from botgate.models.message import Message
from botgate.platforms.base import InboundUpdate, PlatformAdapter
from botgate.platforms.registry import adapter_for
from botgate.services.bot_directory import BotDirectory
from botgate.services.dispatcher import OutboundDispatcher
from botgate.services.execution_logger import ExecutionLogger
from botgate.services.history_store import HistoryStore
from botgate.services.model_provider import (
    ProviderConfig,
    ProviderResolver,
    SqlAccountCredentials,
)
from botgate.services.orchestrator import ReplyOrchestrator

logger = logging.getLogger(__name__)

DROP_INTEGRATION_MISSING = "integration_missing"
DROP_INTEGRATION_INACTIVE = "integration_inactive"
DROP_UNDECODABLE = "undecodable"


@dataclass
class JobOutcome:
    """Summary of one processed job, returned for logging and tests."""

    integration_id: str
    updates_seen: int = 0
    replies_sent: int = 0
    already_answered: int = 0
    dropped: str | None = None


class IntegrationLookup(Protocol):
    def get_integration(self, integration_id: str) -> Integration | None: ...


class IncomingRecorder(Protocol):
    def record_incoming(self, integration: Integration, update: InboundUpdate) -> Message: ...

    def has_reply(self, message_id: str) -> bool: ...


class SqlIntegrationLookup:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_integration(self, integration_id: str) -> Integration | None:
        return self.db.get(Integration, integration_id)


class InboundPipeline:
    """Decode, persist, reply, dispatch.

    Args:
        integrations: Loads the integration a job belongs to.
        history: Records incoming messages.
        orchestrator: Produces the reply text.
        dispatcher: Sends and records the reply.
        adapter_factory: Builds the platform adapter for an integration.
    """

    def __init__(
        self,
        integrations: IntegrationLookup,
        history: IncomingRecorder,
        orchestrator: ReplyOrchestrator,
        dispatcher: OutboundDispatcher,
        adapter_factory: Callable[[Integration], PlatformAdapter] = adapter_for,
    ) -> None:
        self.integrations = integrations
        self.history = history
        self.orchestrator = orchestrator
        self.dispatcher = dispatcher
        self.adapter_factory = adapter_factory

    def process_job(self, job: dict[str, Any]) -> JobOutcome:
        integration_id = str(job.get("integration_id", ""))
        outcome = JobOutcome(integration_id=integration_id)

        integration = self.integrations.get_integration(integration_id)
        if integration is None:
            logger.info("Dropping job for unknown integration %s", integration_id)
            outcome.dropped = DROP_INTEGRATION_MISSING
            return outcome

        if integration.status != IntegrationStatus.CONNECTED.value:
            logger.info(
                "Dropping job for integration %s in status %s",
                integration_id,
                integration.status,
            )
            outcome.dropped = DROP_INTEGRATION_INACTIVE
            return outcome

        if job.get("platform") and job["platform"] != integration.platform:
            logger.warning(
                "Job platform %s does not match integration %s (%s); using the integration's",
                job["platform"],
                integration_id,
                integration.platform,
            )

        adapter = self.adapter_factory(integration)
        try:
            updates = adapter.decode_update(job.get("raw_payload"))
        except DecodeError as exc:
            logger.warning("Dropping undecodable payload for integration %s: %s", integration_id, exc)
            outcome.dropped = DROP_UNDECODABLE
            return outcome

        for update in updates:
            outcome.updates_seen += 1
            if not update.is_actionable:
                logger.debug(
                    "Ignoring %s update for integration %s", update.kind.value, integration_id
                )
                continue
            if self._handle_update(adapter, integration, update):
                outcome.replies_sent += 1
            else:
                outcome.already_answered += 1

        return outcome

    def _handle_update(
        self,
        adapter: PlatformAdapter,
        integration: Integration,
        update: InboundUpdate,
    ) -> bool:
        """Answer one update; False when a reply to it was sent by an earlier attempt."""
        chat_id = str(update.chat_id)
        incoming = self.history.record_incoming(integration, update)
        if self.history.has_reply(incoming.id):
            logger.info(
                "Message %s in chat %s was already answered; skipping",
                incoming.id,
                chat_id,
            )
            return False

        if update.platform_message_id:
            adapter.mark_as_read(update.platform_message_id)

        reply = self.orchestrator.generate_reply(
            integration,
            update.text or "",
            chat_id=chat_id,
            exclude_message_id=incoming.id,
        )
        self.dispatcher.dispatch(
            adapter, integration, chat_id, reply.text, reply_to_message_id=incoming.id
        )
        return True


def build_pipeline(db: Session, settings: Settings) -> InboundPipeline:
    """Wire the SQL-backed collaborators for one worker job."""
    history = HistoryStore(db)
    orchestrator = ReplyOrchestrator(
        bots=BotDirectory(db),
        history=history,
        executions=ExecutionLogger(db),
        providers=ProviderResolver(
            ProviderConfig.from_settings(settings), SqlAccountCredentials(db)
        ),
        history_limit=settings.history_limit,
        default_temperature=settings.default_temperature,
    )
    return InboundPipeline(
        integrations=SqlIntegrationLookup(db),
        history=history,
        orchestrator=orchestrator,
        dispatcher=OutboundDispatcher(history),
        adapter_factory=lambda integration: adapter_for(integration, settings),
    )
