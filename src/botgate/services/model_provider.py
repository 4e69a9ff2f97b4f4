"""Agno model provider factory and key resolution.

Maps a bot's ``model_provider`` to a configured Agno model and wraps it in
a ``ChatProvider`` the orchestrator can call synchronously from a worker.
Deployment-level keys (``ProviderConfig``) win over per-account keys
(``AccountCredentials``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from agno.agent import Agent
from agno.models.anthropic import Claude
from agno.models.google import Gemini
from agno.models.message import Message as ModelMessage
from agno.models.ollama import Ollama
from agno.models.openai import OpenAIResponses
from sqlalchemy import select
from sqlalchemy.orm import Session

from botgate.config import Settings
from botgate.errors import ProviderError, ProviderUnavailable
from botgate.models.provider_credential import ProviderCredential

logger = logging.getLogger(__name__)

PROVIDER_REGISTRY: dict[str, dict[str, Any]] = {
    "openai": {
        "class": OpenAIResponses,
        "settings_key": "openai_api_key",
        "default_model": "gpt-4o",
        "supports_timeout": True,
    },
    "anthropic": {
        "class": Claude,
        "settings_key": "anthropic_api_key",
        "default_model": "claude-sonnet-4-20250514",
        "supports_timeout": True,
    },
    "gemini": {
        "class": Gemini,
        "settings_key": "gemini_api_key",
        "default_model": "gemini-2.0-flash",
        "supports_timeout": False,
    },
    "ollama": {
        "class": Ollama,
        "settings_key": None,
        "default_model": "llama3.2",
        "supports_timeout": False,
    },
}

SUPPORTED_PROVIDERS: list[str] = sorted(PROVIDER_REGISTRY.keys())


@dataclass(frozen=True)
class ChatTurn:
    """One prior conversation turn; role is ``user`` or ``assistant``."""

    role: str
    content: str


class ChatProvider(Protocol):
    def complete(
        self,
        model_name: str,
        temperature: float,
        system_prompt: str,
        history: list[ChatTurn],
        prompt: str,
    ) -> str: ...


class AccountCredentials(Protocol):
    def api_key_for(self, account_id: str, provider: str) -> str | None: ...


@dataclass(frozen=True)
class ProviderConfig:
    """Deployment-level provider configuration, injected into the resolver."""

    api_keys: dict[str, str] = field(default_factory=dict)
    ollama_host: str | None = None
    timeout_seconds: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderConfig:
        api_keys: dict[str, str] = {}
        for provider, config in PROVIDER_REGISTRY.items():
            settings_key = config["settings_key"]
            value = getattr(settings, settings_key, None) if settings_key else None
            if value:
                api_keys[provider] = value
        return cls(
            api_keys=api_keys,
            ollama_host=settings.ollama_host,
            timeout_seconds=settings.provider_timeout_seconds,
        )


class SqlAccountCredentials:
    """Per-account provider keys stored in ``provider_credentials``.

    Args:
        db: Sync SQLAlchemy session.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def api_key_for(self, account_id: str, provider: str) -> str | None:
        result = self.db.execute(
            select(ProviderCredential.api_key).where(
                ProviderCredential.account_id == account_id,
                ProviderCredential.provider == provider,
            )
        )
        return result.scalar_one_or_none()


def create_model(
    provider: str,
    model_name: str,
    temperature: float,
    api_key: str | None = None,
    host: str | None = None,
    timeout: float | None = None,
) -> OpenAIResponses | Claude | Gemini | Ollama:
    """Create an Agno model instance for the given provider and model.

    Each Agno model class takes different constructor parameters:
    - OpenAIResponses / Claude: id, api_key, temperature, timeout
    - Gemini: id, api_key, temperature
    - Ollama: id, host, and sampling options (no api_key)

    Raises:
        ValueError: If provider is unknown.
    """
    config = PROVIDER_REGISTRY.get(provider)
    if not config:
        raise ValueError(
            f"Unknown provider: '{provider}'. Supported providers: {SUPPORTED_PROVIDERS}"
        )

    kwargs: dict[str, Any] = {"id": model_name or config["default_model"]}

    if provider == "ollama":
        kwargs["host"] = host
        kwargs["options"] = {"temperature": temperature}
    else:
        kwargs["api_key"] = api_key
        kwargs["temperature"] = temperature

    if timeout is not None and config["supports_timeout"]:
        kwargs["timeout"] = timeout

    return config["class"](**kwargs)


class AgnoChatProvider:
    """Runs a single stateless completion through an Agno agent."""

    def __init__(
        self,
        provider: str,
        api_key: str | None = None,
        host: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.provider = provider
        self._api_key = api_key
        self._host = host
        self._timeout = timeout

    def complete(
        self,
        model_name: str,
        temperature: float,
        system_prompt: str,
        history: list[ChatTurn],
        prompt: str,
    ) -> str:
        try:
            model = create_model(
                self.provider,
                model_name,
                temperature,
                api_key=self._api_key,
                host=self._host,
                timeout=self._timeout,
            )
            agent = Agent(
                model=model,
                instructions=system_prompt or None,
                markdown=False,
            )
            messages = [
                ModelMessage(role=turn.role, content=turn.content) for turn in history
            ]
            messages.append(ModelMessage(role="user", content=prompt))
            response = agent.run(messages)
        except Exception as exc:
            raise ProviderError(f"{self.provider} call failed: {exc}") from exc

        status = getattr(getattr(response, "status", None), "value", None)
        if status and str(status).upper() == "ERROR":
            raise ProviderError(f"{self.provider} run ended in error: {response.content}")

        content = response.content if isinstance(response.content, str) else None
        if not content or not content.strip():
            raise ProviderError(f"{self.provider} returned an empty completion")
        return content.strip()


class ProviderResolver:
    """Picks the key for a bot's provider and builds its ``ChatProvider``.

    Args:
        config: Deployment-level keys and provider options.
        credentials: Per-account key lookup, consulted when the deployment
            has no key for the provider.
    """

    def __init__(self, config: ProviderConfig, credentials: AccountCredentials) -> None:
        self.config = config
        self.credentials = credentials

    def resolve(self, account_id: str, provider: str) -> ChatProvider:
        """Return a ready-to-call provider.

        Raises:
            ProviderUnavailable: If the provider is unknown or no key exists.
        """
        if provider not in PROVIDER_REGISTRY:
            raise ProviderUnavailable(f"Unknown model provider '{provider}'")

        if provider == "ollama":
            if not self.config.ollama_host:
                raise ProviderUnavailable("Ollama host is not configured")
            return AgnoChatProvider(provider, host=self.config.ollama_host)

        api_key = self.config.api_keys.get(provider)
        if not api_key:
            api_key = self.credentials.api_key_for(account_id, provider)
            if api_key:
                logger.debug("Using account-level %s key for account %s", provider, account_id)
        if not api_key:
            raise ProviderUnavailable(
                f"No API key configured for provider '{provider}'"
            )
        return AgnoChatProvider(provider, api_key=api_key, timeout=self.config.timeout_seconds)
