"""Exception hierarchy shared by the webhook receiver, adapters, and workers.

The worker decides retry eligibility by type: ``DeliveryError`` and
persistence errors are retried by the queue, ``DecodeError`` drops the
update, and provider errors never leave the orchestrator.
"""

from __future__ import annotations


class BotgateError(Exception):
    """Base class for all botgate errors."""


class DecodeError(BotgateError):
    """A webhook payload does not match the platform's update schema."""


class DeliveryError(BotgateError):
    """The chat platform rejected (or never received) an outbound send.

    Args:
        description: Human-readable reason, usually the platform's own text.
        status_code: HTTP status returned by the platform, if any.
    """

    def __init__(self, description: str, status_code: int | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.status_code = status_code


class WebhookRegistrationError(BotgateError):
    """The platform refused to register (or replace) our webhook URL."""


class IntegrationSetupError(BotgateError):
    """Credentials supplied during setup or reconnect failed validation."""


class ProviderUnavailable(BotgateError):
    """No API key (deployment or account level) exists for a model provider."""


class ProviderError(BotgateError):
    """The model provider call failed or produced no usable completion."""
