"""
Providers module: Capability provider interface and vendor adapters.

Key exports:
- CapabilityProvider: Abstract completion/embedding/estimation interface
- CompletionResponse, TokenUsage: Provider-neutral response records
- OpenAIProvider, GroqProvider: Adapters over the async vendor SDKs
- ProviderClients, get_clients(): Lazy shared SDK clients
"""

from llm_router.providers.base import (
    CapabilityProvider,
    CompletionResponse,
    TokenUsage,
)
from llm_router.providers.clients import ProviderClients, get_clients
from llm_router.providers.groq_provider import GroqProvider
from llm_router.providers.openai_provider import OpenAIProvider

__all__ = [
    "CapabilityProvider",
    "CompletionResponse",
    "TokenUsage",
    "ProviderClients",
    "get_clients",
    "GroqProvider",
    "OpenAIProvider",
]
