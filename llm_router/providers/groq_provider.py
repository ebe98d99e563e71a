"""
Groq capability provider.

Groq provides fast inference for open-weight Llama models. It has no
embedding endpoint, so generate_embedding always fails; the dispatcher
treats that as "no semantic caching for this call".
"""

import logging
import time

import groq
from groq import AsyncGroq

from llm_router.errors import ProviderError, RateLimitError, UnsupportedOperationError
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


class GroqProvider(CapabilityProvider):
    """
    Capability provider for one Groq-hosted model.

    Args:
        model: Groq model name (e.g. "llama-3.1-8b-instant")
        client: Optional preconfigured AsyncGroq client
    """

    name = "groq"

    def __init__(self, model: str, client: AsyncGroq | None = None):
        self.model = model
        self._client = client

    @property
    def client(self) -> AsyncGroq:
        if self._client is None:
            return get_clients().groq
        return self._client

    @property
    def candidate(self) -> str:
        return f"{self.name}:{self.model}"

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
        except groq.RateLimitError as e:
            raise RateLimitError(
                f"Groq rate limit: {e}",
                candidate=self.candidate,
                retry_after_ms=parse_retry_after_ms(e.response.headers),
            ) from e
        except groq.APIError as e:
            raise ProviderError(
                f"Groq request failed: {e}", candidate=self.candidate
            ) from e

        latency_ms = (time.perf_counter() - start_time) * 1000

        choice = response.choices[0]
        usage = response.usage

        logger.info(f"Groq completion: model={self.model}, latency={latency_ms:.0f}ms")

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
        Raises:
            UnsupportedOperationError: Always; Groq offers no embedding endpoint
        """
        raise UnsupportedOperationError("Groq does not support embeddings", candidate=self.candidate)
