"""
Pytest configuration and shared fixtures.

Provides scripted providers, profile factories, fake clocks, and
environment setup for the LLM Router test suite.

IMPORTANT: Environment variables must be set BEFORE importing llm_router
modules that use pydantic-settings.
"""

import os

# Set test environment variables before importing llm_router modules
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["GROQ_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DEBUG"] = "false"

# Now safe to import everything else
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from llm_router.config import Settings
from llm_router.errors import ProviderError
from llm_router.providers.base import CapabilityProvider, CompletionResponse, TokenUsage
from llm_router.registry.models import CapabilityProfile


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "asyncio: mark test as async")
    config.addinivalue_line(
        "markers", "integration: mark test as exercising several components"
    )
    config.addinivalue_line("markers", "slow: mark test as relying on real delays")


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset all singleton instances between tests.

    This ensures each test starts with a clean state.
    """
    yield

    from llm_router.config import get_settings

    get_settings.cache_clear()

    from llm_router.dispatcher.engine import reset_dispatcher

    reset_dispatcher()

    from llm_router.metrics import cost, store

    store._store = None
    cost._calculator = None

    from llm_router.providers import clients

    clients._clients = None


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class FakeProvider(CapabilityProvider):
    """
    Scripted capability provider.

    Each completion call consumes the next item of ``outcomes``: an
    Exception instance is raised, a string is returned as the completion
    text. Once the script is exhausted every call returns a default reply.
    """

    def __init__(
        self,
        name: str,
        model: str,
        outcomes: list | None = None,
        embeddings: dict[str, list[float]] | None = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.model = model
        self.outcomes = list(outcomes or [])
        self.embeddings = embeddings
        self.delay = delay
        self.completion_calls = 0
        self.embedding_calls = 0
        self.seen_options = []

    async def generate_completion(self, text, options=None):
        self.completion_calls += 1
        self.seen_options.append(options)
        if self.delay:
            await asyncio.sleep(self.delay)

        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome

        reply = outcome if outcome is not None else f"reply from {self.name}:{self.model}"
        return CompletionResponse(
            text=reply,
            model=self.model,
            provider=self.name,
            usage=TokenUsage(input_tokens=10, output_tokens=5),
        )

    async def generate_embedding(self, text):
        self.embedding_calls += 1
        if self.embeddings is None or text not in self.embeddings:
            raise ProviderError("no embedding available", candidate=f"{self.name}:{self.model}")
        return self.embeddings[text]


@pytest.fixture
def fake_provider():
    """
    Factory fixture for scripted providers.

    Usage:
        provider = fake_provider("openai", "gpt-4o", outcomes=[ProviderError("x"), "ok"])
    """

    def _create(name: str = "fake", model: str = "model", **kwargs) -> FakeProvider:
        return FakeProvider(name, model, **kwargs)

    return _create


@pytest.fixture
def make_profile():
    """
    Factory fixture for capability profiles.

    Usage:
        profile = make_profile("openai", "gpt-4o", reasoning=9, cost=0.00002)
    """

    def _create(
        provider: str,
        model: str,
        speed: float = 5,
        knowledge: float = 5,
        reasoning: float = 5,
        creativity: float | None = None,
        cost: float = 0.000001,
        output_cost: float | None = None,
    ) -> CapabilityProfile:
        capabilities = {"speed": speed, "knowledge": knowledge, "reasoning": reasoning}
        if creativity is not None:
            capabilities["creativity"] = creativity
        return CapabilityProfile(
            provider=provider,
            model=model,
            capabilities=capabilities,
            cost_per_input_unit=cost,
            cost_per_output_unit=cost if output_cost is None else output_cost,
        )

    return _create


@pytest.fixture
def fast_settings():
    """Settings with pacing and backoff disabled and a single attempt per candidate."""
    return Settings(
        min_request_interval_ms=0,
        retry_base_delay_ms=0,
        max_retries=0,
        request_timeout_ms=2000,
        cache_cleanup_interval_seconds=3600,
    )


@pytest.fixture
def make_dispatcher(fast_settings):
    """
    Factory fixture for dispatchers with a private metrics store.

    Usage:
        dispatcher = make_dispatcher()
        dispatcher.register(provider, profile)
    """
    from llm_router.dispatcher import Dispatcher
    from llm_router.metrics import MetricsStore

    def _create(**kwargs):
        kwargs.setdefault("settings", fast_settings)
        kwargs.setdefault("metrics_store", MetricsStore())
        return Dispatcher(**kwargs)

    return _create


@pytest.fixture
def mock_chat_response():
    """Create a mock chat completions response object (OpenAI/Groq shape)."""
    response = MagicMock()
    response.id = "chatcmpl-123"
    response.model = "gpt-4o-mini"
    response.choices = [
        MagicMock(
            message=MagicMock(content="Paris is the capital of France."),
            finish_reason="stop",
        )
    ]
    response.usage = MagicMock(prompt_tokens=14, completion_tokens=7)
    return response


@pytest.fixture
def mock_openai_client(mock_chat_response):
    """Create a fully mocked AsyncOpenAI client."""
    mock = AsyncMock()
    mock.chat = MagicMock()
    mock.chat.completions = MagicMock()
    mock.chat.completions.create = AsyncMock(return_value=mock_chat_response)

    embedding_response = MagicMock()
    embedding_response.data = [MagicMock(embedding=[0.1, 0.2, 0.3])]
    mock.embeddings = MagicMock()
    mock.embeddings.create = AsyncMock(return_value=embedding_response)
    return mock


@pytest.fixture
def mock_groq_client(mock_chat_response):
    """Create a fully mocked AsyncGroq client."""
    mock = AsyncMock()
    mock.chat = MagicMock()
    mock.chat.completions = MagicMock()
    mock.chat.completions.create = AsyncMock(return_value=mock_chat_response)
    return mock
