"""
OpenAI capability provider.

Chat completions and embeddings through the async OpenAI SDK. SDK errors
are translated into the router's taxonomy: HTTP 429 becomes RateLimitError
(carrying the server's Retry-After), every other API failure ProviderError.
"""

import logging
import time

import openai
from openai import AsyncOpenAI

from llm_router.config import get_settings
from llm_router.errors import ProviderError, RateLimitError
from llm_router.providers.base import (
    CapabilityProvider,
    CompletionResponse,
    TokenUsage,
    build_chat_kwargs,
    parse_retry_after_ms,
)
from llm_router.providers.clients import get_clients
from llm_router.schemas.dispatch import RequestOptions

logger = logging.getLogger(__name__)


class OpenAIProvider(CapabilityProvider):
    """
    Capability provider for one OpenAI chat model.

    Args:
        model: Chat model name (e.g. "gpt-4o-mini")
        client: Optional preconfigured AsyncOpenAI client; the shared lazy
                client is used when omitted
        embedding_model: Embedding model name, defaults to settings
    """

    name = "openai"

    def __init__(
        self,
        model: str,
        client: AsyncOpenAI | None = None,
        embedding_model: str | None = None,
    ):
        self.model = model
        self._client = client
        self.embedding_model = embedding_model or get_settings().openai_embedding_model

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            return get_clients().openai
        return self._client

    @property
    def candidate(self) -> str:
        return f"{self.name}:{self.model}"

    def _translate(self, error: Exception) -> ProviderError:
        if isinstance(error, openai.RateLimitError):
            response = getattr(error, "response", None)
            return RateLimitError(
                f"OpenAI rate limit: {error}",
                candidate=self.candidate,
                retry_after_ms=parse_retry_after_ms(getattr(response, "headers", None)),
            )
        return ProviderError(f"OpenAI request failed: {error}", candidate=self.candidate)

    async def generate_completion(
        self, text: str, options: RequestOptions | None = None
    ) -> CompletionResponse:
        """
        Generate a chat completion.

        Raises:
            ValidationError: If text is empty
            RateLimitError: On HTTP 429
            ProviderError: On any other API failure
        """
        self.validate_text(text)
        start_time = time.perf_counter()

        try:
            response = await self.client.chat.completions.create(
                **build_chat_kwargs(self.model, text, options)
            )
        except openai.APIError as e:
            raise self._translate(e) from e

        latency_ms = (time.perf_counter() - start_time) * 1000

        choice = response.choices[0]
        usage = response.usage

        logger.info(
            f"OpenAI completion: model={self.model}, latency={latency_ms:.0f}ms"
        )

        return CompletionResponse(
            text=choice.message.content or "",
            model=response.model or self.model,
            provider=self.name,
            usage=TokenUsage(
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
            ),
            metadata={
                "id": response.id,
                "finish_reason": choice.finish_reason,
                "latency_ms": round(latency_ms, 2),
            },
        )

    async def generate_embedding(self, text: str) -> list[float]:
        """
        Embed text with the configured embedding model.

        Raises:
            ProviderError: On any API failure
        """
        self.validate_text(text)

        try:
            response = await self.client.embeddings.create(
                model=self.embedding_model, input=text
            )
        except openai.APIError as e:
            raise self._translate(e) from e

        return list(response.data[0].embedding)
