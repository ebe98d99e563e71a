"""
Lazy-initialized provider SDK clients.

Clients are created on first use to avoid initialization errors when API
keys are not configured for unused providers.
"""

import logging

from groq import AsyncGroq
from openai import AsyncOpenAI

from llm_router.config import get_settings
from llm_router.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ProviderClients:
    """
    Lazy-initialized async SDK clients (AsyncGroq, AsyncOpenAI).

    Async clients let concurrent dispatch tasks share one connection pool
    per provider. SDK-level retries are disabled; ResilientExecutor owns
    retry and pacing.
    """

    def __init__(self) -> None:
        self._settings = get_settings()
        self._groq: AsyncGroq | None = None
        self._openai: AsyncOpenAI | None = None

    @property
    def groq(self) -> AsyncGroq:
        """
        Get Groq client (lazy initialization).

        Raises:
            ConfigurationError: If GROQ_API_KEY is not configured.
        """
        if self._groq is None:
            if self._settings.groq_api_key is None:
                raise ConfigurationError("GROQ_API_KEY is not configured")
            api_key = self._settings.groq_api_key.get_secret_value()
            self._groq = AsyncGroq(api_key=api_key, max_retries=0)
            logger.debug("Initialized Groq client")
        return self._groq

    @property
    def openai(self) -> AsyncOpenAI:
        """
        Get OpenAI client (lazy initialization).

        Raises:
            ConfigurationError: If OPENAI_API_KEY is not configured.
        """
        if self._openai is None:
            if self._settings.openai_api_key is None:
                raise ConfigurationError("OPENAI_API_KEY is not configured")
            api_key = self._settings.openai_api_key.get_secret_value()
            self._openai = AsyncOpenAI(api_key=api_key, max_retries=0)
            logger.debug("Initialized OpenAI client")
        return self._openai


# Global client instance (singleton pattern)
_clients: ProviderClients | None = None


def get_clients() -> ProviderClients:
    """
    Get the global provider clients instance.

    Returns:
        The singleton ProviderClients instance.
    """
    global _clients
    if _clients is None:
        _clients = ProviderClients()
    return _clients
