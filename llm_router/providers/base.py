"""
Capability provider interface.

A capability provider adapts one backend model to the three operations the
dispatcher needs: completion, embedding, and a local size estimate used for
cost filtering. The dispatcher and executor depend only on this interface.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from llm_router.errors import ValidationError
from llm_router.schemas.dispatch import RequestOptions

# Rough characters-per-token ratio for English text
CHARS_PER_UNIT = 4

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


@dataclass(frozen=True)
class TokenUsage:
    """
    Token usage reported by a backend.

    Used for cost estimation based on CapabilityProfile pricing.
    """

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class CompletionResponse:
    """
    Result of a successful completion call.

    Instances are stored in the result cache and returned verbatim on hits,
    so they are immutable.

    Attributes:
        text: Completion text
        model: Model name reported by the backend
        provider: Provider name
        usage: Token usage, zero when the backend reports none
        metadata: Provider-specific extras (finish reason, response id, ...)
    """

    text: str
    model: str
    provider: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    metadata: dict[str, Any] = field(default_factory=dict)


class CapabilityProvider(ABC):
    """
    One backend model behind the dispatcher.

    Implementations raise ProviderError (or RateLimitError) on any backend
    failure; they never return error-shaped responses.
    """

    name: str = "provider"

    @abstractmethod
    async def generate_completion(
        self, text: str, options: RequestOptions | None = None
    ) -> CompletionResponse:
        """Generate a completion for text."""

    @abstractmethod
    async def generate_embedding(self, text: str) -> list[float]:
        """Return an embedding vector for text."""

    def estimate_units(self, text: str) -> int:
        """Approximate token count for text. Local, deterministic."""
        return math.ceil(len(text) / CHARS_PER_UNIT)

    @staticmethod
    def validate_text(text: str) -> None:
        """
        Raises:
            ValidationError: If text is not a non-empty string
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text must be a non-empty string")


def build_chat_kwargs(
    model: str, text: str, options: RequestOptions | None
) -> dict[str, Any]:
    """
    Build keyword arguments for an OpenAI-compatible chat completions call.

    Unset sampling options are omitted so backend defaults apply.
    """
    options = options or RequestOptions()
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": text}],
        "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
        "temperature": (
            options.temperature
            if options.temperature is not None
            else DEFAULT_TEMPERATURE
        ),
    }
    if options.top_p is not None:
        kwargs["top_p"] = options.top_p
    if options.stop:
        kwargs["stop"] = options.stop
    return kwargs


def parse_retry_after_ms(headers: Any) -> float | None:
    """
    Read a Retry-After header (in seconds) as milliseconds.

    Returns:
        Delay in milliseconds, or None if the header is absent or not numeric
    """
    if headers is None:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return max(0.0, seconds * 1000)
