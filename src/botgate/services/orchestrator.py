"""AI reply orchestration.

Given an integration and an inbound text, find the account's active bot,
resolve its model provider, assemble bounded conversation context, call
the provider, and audit the attempt. Provider failures never escape: the
caller always gets a ``Reply`` it can send.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from botgate.errors import ProviderError, ProviderUnavailable
from botgate.models.bot import Bot
from botgate.models.integration import Integration
from botgate.services.execution_logger import EXECUTION_ERROR, EXECUTION_SUCCESS
from botgate.services.model_provider import ChatProvider, ChatTurn

logger = logging.getLogger(__name__)

NO_ACTIVE_BOT_REPLY = "⚠️ No active AI assistant found. Please deploy a bot."
PROVIDER_UNAVAILABLE_REPLY = (
    "⚠️ This assistant is not configured yet: no API key is set for its AI provider."
)
FALLBACK_REPLY = (
    "⚠️ System Error: I'm having trouble thinking right now. Please try again later."
)

REPLY_OK = "ok"
REPLY_NO_BOT = "no_bot"
REPLY_ERROR = "error"


@dataclass(frozen=True)
class Reply:
    text: str
    status: str
    bot_id: str | None = None


class BotLookup(Protocol):
    def active_bot_for(self, account_id: str) -> Bot | None: ...


class TurnSource(Protocol):
    def recent_turns(
        self,
        integration_id: str,
        chat_id: str | None,
        limit: int,
        exclude_message_id: str | None = None,
    ) -> list[ChatTurn]: ...


class ExecutionRecorder(Protocol):
    def record(
        self,
        bot_id: str,
        account_id: str,
        integration_id: str | None,
        status: str,
        error_message: str | None,
        duration_ms: int,
    ) -> object: ...


class ProviderLookup(Protocol):
    def resolve(self, account_id: str, provider: str) -> ChatProvider: ...


class ReplyOrchestrator:
    """Produces exactly one reply per inbound text.

    Args:
        bots: Active-bot lookup.
        history: Conversation history source.
        executions: Execution audit sink; must not raise.
        providers: Provider resolver.
        history_limit: Maximum prior turns sent as context.
        default_temperature: Used when the bot has none configured.
    """

    def __init__(
        self,
        bots: BotLookup,
        history: TurnSource,
        executions: ExecutionRecorder,
        providers: ProviderLookup,
        history_limit: int = 10,
        default_temperature: float = 0.7,
    ) -> None:
        self.bots = bots
        self.history = history
        self.executions = executions
        self.providers = providers
        self.history_limit = history_limit
        self.default_temperature = default_temperature

    def generate_reply(
        self,
        integration: Integration,
        text: str,
        chat_id: str | None = None,
        exclude_message_id: str | None = None,
    ) -> Reply:
        bot = self.bots.active_bot_for(integration.account_id)
        if bot is None:
            logger.info("No active bot for account %s", integration.account_id)
            return Reply(text=NO_ACTIVE_BOT_REPLY, status=REPLY_NO_BOT)

        # outside the attempt: persistence errors must reach the queue
        turns = self.history.recent_turns(
            integration.id, chat_id, self.history_limit, exclude_message_id
        )

        started = time.monotonic()
        status = EXECUTION_ERROR
        error_message: str | None = None
        try:
            provider = self.providers.resolve(integration.account_id, bot.model_provider)
            completion = provider.complete(
                model_name=bot.model_name,
                temperature=(
                    bot.temperature if bot.temperature is not None else self.default_temperature
                ),
                system_prompt=bot.system_prompt or bot.personality or "",
                history=turns,
                prompt=text,
            )
            status = EXECUTION_SUCCESS
            return Reply(text=completion, status=REPLY_OK, bot_id=bot.id)
        except ProviderUnavailable as exc:
            error_message = str(exc)
            logger.warning("Bot %s has no usable provider: %s", bot.id, exc)
            return Reply(text=PROVIDER_UNAVAILABLE_REPLY, status=REPLY_ERROR, bot_id=bot.id)
        except ProviderError as exc:
            error_message = str(exc)
            logger.error("Provider call failed for bot %s: %s", bot.id, exc)
            return Reply(text=FALLBACK_REPLY, status=REPLY_ERROR, bot_id=bot.id)
        except SQLAlchemyError as exc:
            error_message = f"{type(exc).__name__}: {exc}"
            raise
        except Exception as exc:
            error_message = f"{type(exc).__name__}: {exc}"
            logger.exception("Unexpected provider failure for bot %s", bot.id)
            return Reply(text=FALLBACK_REPLY, status=REPLY_ERROR, bot_id=bot.id)
        finally:
            self.executions.record(
                bot_id=bot.id,
                account_id=integration.account_id,
                integration_id=integration.id,
                status=status,
                error_message=error_message,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
