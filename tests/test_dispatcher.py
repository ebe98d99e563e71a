"""
Dispatcher Tests

Tests for candidate filtering and ordering, sequential fallback, cache
integration, error propagation, metrics recording, and lifecycle.

Test Categories:
1. TestRegistration - Candidate registration
2. TestFiltering - Preference, capability, and cost filters
3. TestOrdering - Fallback strategies and the default ranking
4. TestFallback - Sequential candidate attempts
5. TestCaching - Exact and semantic cache integration
6. TestErrors - Validation and configuration errors
7. TestMetrics - Metrics recording
8. TestLifecycle - start/stop and singleton access
"""

import asyncio

import pytest

from llm_router.classifier import ComplexityTier
from llm_router.config import Settings
from llm_router.dispatcher import (
    ResilientExecutor,
    adaptive_score,
    create_dispatcher,
    get_dispatcher,
    shutdown_dispatcher,
)
from llm_router.errors import (
    AllCandidatesFailedError,
    ConfigurationError,
    ProviderError,
    RateLimitError,
    UnsupportedOperationError,
    ValidationError,
)
from llm_router.providers import GroqProvider, OpenAIProvider
from llm_router.schemas import FallbackStrategy, RequestOptions, ResponseSource


def keys(profiles):
    return [p.key for p in profiles]


class TestRegistration:
    """Candidate registration."""

    def test_register_keeps_order(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("a", "m"), make_profile("a", "m"))
        dispatcher.register(fake_provider("b", "m"), make_profile("b", "m"))

        assert keys(dispatcher.candidates) == ["a:m", "b:m"]
        assert dispatcher.get_executor("a:m") is not dispatcher.get_executor("b:m")

    def test_register_many(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register_many(
            [
                (fake_provider("a", "m"), make_profile("a", "m")),
                (fake_provider("b", "m"), make_profile("b", "m")),
            ]
        )

        assert len(dispatcher.registry) == 2

    def test_duplicate_key_rejected(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("a", "m"), make_profile("a", "m"))

        with pytest.raises(ConfigurationError):
            dispatcher.register(fake_provider("a", "m"), make_profile("a", "m"))

    def test_executor_built_from_settings(self, make_dispatcher, fake_provider, make_profile):
        settings = Settings(min_request_interval_ms=250, max_retries=5, request_timeout_ms=900)
        dispatcher = make_dispatcher(settings=settings)
        dispatcher.register(fake_provider("a", "m"), make_profile("a", "m"))
        executor = dispatcher.get_executor("a:m")

        assert executor.min_interval_ms == 250
        assert executor.max_retries == 5
        assert executor.default_timeout_ms == 900


class TestFiltering:
    """Eligibility filters."""

    @pytest.fixture
    def dispatcher(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(
            fake_provider("openai", "small"),
            make_profile("openai", "small", reasoning=6, cost=0.000005),
        )
        dispatcher.register(
            fake_provider("openai", "large"),
            make_profile("openai", "large", reasoning=9, cost=0.00001),
        )
        dispatcher.register(
            fake_provider("groq", "small"),
            make_profile("groq", "small", reasoning=8, cost=0.000001),
        )
        return dispatcher

    def test_preferred_provider(self, dispatcher):
        options = RequestOptions(preferred_provider="openai")
        assert set(keys(dispatcher.eligible_candidates(options))) == {"openai:small", "openai:large"}

    def test_preferred_model(self, dispatcher):
        options = RequestOptions(preferred_model="small")
        assert set(keys(dispatcher.eligible_candidates(options))) == {"openai:small", "groq:small"}

    def test_min_capability(self, dispatcher):
        options = RequestOptions(min_capability={"reasoning": 8})
        assert set(keys(dispatcher.eligible_candidates(options))) == {"openai:large", "groq:small"}

    def test_undeclared_capability_counts_as_zero(self, dispatcher):
        options = RequestOptions(min_capability={"creativity": 1})
        assert dispatcher.eligible_candidates(options) == []

    def test_max_cost(self, dispatcher):
        # estimates: small 0.01, large 0.02, groq 0.002
        options = RequestOptions(max_cost=0.015)
        assert set(keys(dispatcher.eligible_candidates(options))) == {"openai:small", "groq:small"}

    def test_max_cost_tight_bound(self, dispatcher):
        options = RequestOptions(max_cost=0.005)
        assert keys(dispatcher.eligible_candidates(options)) == ["groq:small"]

    def test_filters_combine(self, dispatcher):
        options = RequestOptions(preferred_provider="openai", min_capability={"reasoning": 8})
        assert keys(dispatcher.eligible_candidates(options)) == ["openai:large"]


class TestOrdering:
    """Fallback strategies and default ranking."""

    def test_cost_ascending(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        for name, cost in (("a", 5.0), ("b", 1.0), ("c", 3.0)):
            dispatcher.register(
                fake_provider(name, "m"), make_profile(name, "m", cost=cost, output_cost=0)
            )

        ordered = dispatcher.select_candidates(
            "hello", RequestOptions(fallback_strategy=FallbackStrategy.COST_ASCENDING)
        )

        assert keys(ordered) == ["b:m", "c:m", "a:m"]

    def test_cost_ties_keep_registration_order(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        for name in ("a", "b", "c"):
            dispatcher.register(fake_provider(name, "m"), make_profile(name, "m"))

        ordered = dispatcher.select_candidates(
            "hello", RequestOptions(fallback_strategy="cost-ascending")
        )

        assert keys(ordered) == ["a:m", "b:m", "c:m"]

    def test_specific_models_intersects_registered(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("y", "b"), make_profile("y", "b"))
        dispatcher.register(fake_provider("z", "c"), make_profile("z", "c"))

        ordered = dispatcher.select_candidates(
            "hello",
            RequestOptions(fallback_strategy="specific-models", fallback_models=["x:a", "y:b"]),
        )

        assert keys(ordered) == ["y:b"]

    def test_specific_models_order_and_dedup(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("y", "b"), make_profile("y", "b"))
        dispatcher.register(fake_provider("z", "c"), make_profile("z", "c"))

        ordered = dispatcher.select_candidates(
            "hello",
            RequestOptions(
                fallback_strategy="specific-models",
                fallback_models=["z:c", "y:b", "z:c"],
            ),
        )

        assert keys(ordered) == ["z:c", "y:b"]

    def test_specific_models_respects_filters(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("y", "b"), make_profile("y", "b"))
        dispatcher.register(fake_provider("z", "c"), make_profile("z", "c"))

        ordered = dispatcher.select_candidates(
            "hello",
            RequestOptions(
                preferred_provider="z",
                fallback_strategy="specific-models",
                fallback_models=["y:b", "z:c"],
            ),
        )

        assert keys(ordered) == ["z:c"]

    @pytest.fixture
    def ranked(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(
            fake_provider("fast", "m"),
            make_profile("fast", "m", speed=9, knowledge=5, reasoning=4, cost=0.0000005),
        )
        dispatcher.register(
            fake_provider("smart", "m"),
            make_profile("smart", "m", speed=4, knowledge=9, reasoning=9, cost=0.000005),
        )
        dispatcher.register(
            fake_provider("mid", "m"),
            make_profile("mid", "m", speed=6, knowledge=8, reasoning=6, cost=0.000001),
        )
        return dispatcher

    def test_capability_descending_simple_uses_speed(self, ranked):
        ordered = ranked.select_candidates(
            "What is DNS?", RequestOptions(fallback_strategy="capability-descending")
        )
        assert keys(ordered) == ["fast:m", "mid:m", "smart:m"]

    def test_capability_descending_moderate_uses_knowledge(self, ranked):
        ordered = ranked.select_candidates(
            "Explain the process of photosynthesis",
            RequestOptions(fallback_strategy="capability-descending"),
        )
        assert keys(ordered) == ["smart:m", "mid:m", "fast:m"]

    def test_capability_descending_complex_uses_reasoning(self, ranked):
        ordered = ranked.select_candidates(
            "Design a fault-tolerant payment system",
            RequestOptions(fallback_strategy="capability-descending"),
        )
        assert keys(ordered) == ["smart:m", "mid:m", "fast:m"]

    def test_default_simple_prefers_fast_and_cheap(self, ranked):
        ordered = ranked.select_candidates("What is DNS?")
        assert keys(ordered)[0] == "fast:m"
        assert keys(ordered)[-1] == "smart:m"

    def test_default_complex_ranks_by_reasoning(self, ranked):
        ordered = ranked.select_candidates("Design a fault-tolerant payment system")
        assert keys(ordered) == ["smart:m", "mid:m", "fast:m"]

    def test_default_moderate_averages_knowledge_and_reasoning(self, ranked):
        ordered = ranked.select_candidates("Explain the process of photosynthesis")
        # smart 9.0, mid 7.0, fast 4.5
        assert keys(ordered) == ["smart:m", "mid:m", "fast:m"]


class TestAdaptiveScore:
    """Unit tests for adaptive_score()."""

    def test_simple_weights_speed_and_cost(self, make_profile):
        cheap = make_profile("a", "m", speed=9, cost=0.1, output_cost=0)
        score = adaptive_score(cheap, ComplexityTier.SIMPLE, max_unit_cost=1.0)
        assert score == pytest.approx(0.7 * 9 + 0.3 * 9)

    def test_simple_most_expensive_gets_zero_cost_score(self, make_profile):
        pricey = make_profile("a", "m", speed=5, cost=1.0, output_cost=0)
        score = adaptive_score(pricey, ComplexityTier.SIMPLE, max_unit_cost=1.0)
        assert score == pytest.approx(3.5)

    def test_simple_all_free(self, make_profile):
        free = make_profile("a", "m", speed=5, cost=0, output_cost=0)
        score = adaptive_score(free, ComplexityTier.SIMPLE, max_unit_cost=0.0)
        assert score == pytest.approx(0.7 * 5 + 0.3 * 10)

    def test_moderate(self, make_profile):
        profile = make_profile("a", "m", knowledge=8, reasoning=6)
        assert adaptive_score(profile, ComplexityTier.MODERATE, 1.0) == pytest.approx(7.0)

    def test_complex(self, make_profile):
        profile = make_profile("a", "m", reasoning=7)
        assert adaptive_score(profile, ComplexityTier.COMPLEX, 1.0) == 7


class TestFallback:
    """Sequential candidate attempts."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        first = fake_provider("a", "m", outcomes=["from a"])
        second = fake_provider("b", "m")
        dispatcher.register(first, make_profile("a", "m", cost=0.000001))
        dispatcher.register(second, make_profile("b", "m", cost=0.000002))

        result = await dispatcher.dispatch(
            "hello", RequestOptions(fallback_strategy="cost-ascending")
        )

        assert result.response.text == "from a"
        assert result.candidate == "a:m"
        assert result.attempts == 1
        assert result.source == ResponseSource.PROVIDER
        assert second.completion_calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_on_provider_error(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        failing = fake_provider("a", "m", outcomes=[ProviderError("down")])
        backup = fake_provider("b", "m", outcomes=["from b"])
        dispatcher.register(failing, make_profile("a", "m", cost=0.000001))
        dispatcher.register(backup, make_profile("b", "m", cost=0.000002))

        result = await dispatcher.dispatch(
            "hello", RequestOptions(fallback_strategy="cost-ascending")
        )

        assert result.response.text == "from b"
        assert result.candidate == "b:m"
        assert result.attempts == 2
        assert failing.completion_calls == 1

    @pytest.mark.asyncio
    async def test_retries_within_candidate_before_fallback(
        self, make_dispatcher, fake_provider, make_profile
    ):
        settings = Settings(min_request_interval_ms=0, retry_base_delay_ms=0, max_retries=2)
        dispatcher = make_dispatcher(settings=settings)
        flaky = fake_provider(
            "a", "m", outcomes=[RateLimitError("429", retry_after_ms=0), "recovered"]
        )
        backup = fake_provider("b", "m")
        dispatcher.register(flaky, make_profile("a", "m", cost=0.000001))
        dispatcher.register(backup, make_profile("b", "m", cost=0.000002))

        result = await dispatcher.dispatch(
            "hello", RequestOptions(fallback_strategy="cost-ascending")
        )

        assert result.response.text == "recovered"
        assert flaky.completion_calls == 2
        assert backup.completion_calls == 0

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        slow = fake_provider("a", "m", delay=1.0)
        backup = fake_provider("b", "m", outcomes=["fast answer"])
        dispatcher.register(slow, make_profile("a", "m", cost=0.000001))
        dispatcher.register(backup, make_profile("b", "m", cost=0.000002))

        result = await dispatcher.dispatch(
            "hello", RequestOptions(fallback_strategy="cost-ascending", timeout_ms=20)
        )

        assert result.response.text == "fast answer"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_options_reach_provider(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        provider = fake_provider("a", "m")
        dispatcher.register(provider, make_profile("a", "m"))
        options = RequestOptions(temperature=0.1, max_tokens=42)

        await dispatcher.dispatch("hello", options)

        assert provider.seen_options[0].max_tokens == 42

    @pytest.mark.asyncio
    async def test_all_fail_raises(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(
            fake_provider("a", "m", outcomes=[ProviderError("a down")]), make_profile("a", "m")
        )
        dispatcher.register(
            fake_provider("b", "m", outcomes=[ProviderError("b down")]), make_profile("b", "m")
        )

        with pytest.raises(AllCandidatesFailedError) as exc_info:
            await dispatcher.dispatch("hello")

        assert exc_info.value.attempted == 2
        assert len(dispatcher.cache) == 0

    @pytest.mark.asyncio
    async def test_no_eligible_candidates(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        provider = fake_provider("a", "m")
        dispatcher.register(provider, make_profile("a", "m", cost=0.001))

        with pytest.raises(AllCandidatesFailedError) as exc_info:
            await dispatcher.dispatch("hello", RequestOptions(max_cost=0.0001))

        assert exc_info.value.attempted == 0
        assert provider.completion_calls == 0

    @pytest.mark.asyncio
    async def test_no_candidates_registered(self, make_dispatcher):
        dispatcher = make_dispatcher()

        with pytest.raises(AllCandidatesFailedError):
            await dispatcher.process_request("hello")

    @pytest.mark.asyncio
    async def test_process_request_returns_response(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("a", "m", outcomes=["hi"]), make_profile("a", "m"))

        response = await dispatcher.process_request("hello")

        assert response.text == "hi"
        assert response.provider == "a"
        assert response.model == "m"


class TestCaching:
    """Exact and semantic cache integration."""

    @pytest.mark.asyncio
    async def test_exact_hit_skips_providers(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        provider = fake_provider("a", "m", outcomes=["Paris"])
        dispatcher.register(provider, make_profile("a", "m"))

        first = await dispatcher.dispatch("What is the capital of France?")
        second = await dispatcher.dispatch("  What is the capital   of France?  ")

        assert second.source == ResponseSource.EXACT_CACHE
        assert second.cached
        assert second.response == first.response
        assert second.candidate is None
        assert provider.completion_calls == 1

    @pytest.mark.asyncio
    async def test_cache_results_false_bypasses_cache(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher()
        provider = fake_provider("a", "m")
        dispatcher.register(provider, make_profile("a", "m"))
        options = RequestOptions(cache_results=False)

        await dispatcher.dispatch("hello", options)
        await dispatcher.dispatch("hello", options)

        assert provider.completion_calls == 2
        assert len(dispatcher.cache) == 0

    @pytest.mark.asyncio
    async def test_cache_disabled_in_settings(self, make_dispatcher, fake_provider, make_profile):
        settings = Settings(min_request_interval_ms=0, max_retries=0, cache_enabled=False)
        dispatcher = make_dispatcher(settings=settings)
        provider = fake_provider("a", "m")
        dispatcher.register(provider, make_profile("a", "m"))

        await dispatcher.dispatch("hello")
        await dispatcher.dispatch("hello")

        assert provider.completion_calls == 2

    @pytest.mark.asyncio
    async def test_semantic_hit_skips_providers(self, make_dispatcher, fake_provider, make_profile):
        embeddings = {
            "What is the capital of France?": [1.0, 0.0, 0.0],
            "What's the capital city of France?": [0.99, 0.141, 0.0],
        }
        dispatcher = make_dispatcher(embedding_candidate="e:m")
        provider = fake_provider("e", "m", outcomes=["Paris"], embeddings=embeddings)
        dispatcher.register(provider, make_profile("e", "m"))

        await dispatcher.dispatch("What is the capital of France?")
        result = await dispatcher.dispatch("What's the capital city of France?")

        assert result.source == ResponseSource.SEMANTIC_CACHE
        assert result.response.text == "Paris"
        assert provider.completion_calls == 1
        # The lookup embedding of the first request is reused for the cache write
        assert provider.embedding_calls == 2

    @pytest.mark.asyncio
    async def test_semantic_miss_below_threshold(self, make_dispatcher, fake_provider, make_profile):
        embeddings = {
            "What is the capital of France?": [1.0, 0.0, 0.0],
            "What is the capital of Peru?": [0.7, 0.7, 0.0],
        }
        dispatcher = make_dispatcher(embedding_candidate="e:m")
        provider = fake_provider("e", "m", embeddings=embeddings)
        dispatcher.register(provider, make_profile("e", "m"))

        await dispatcher.dispatch("What is the capital of France?")
        result = await dispatcher.dispatch("What is the capital of Peru?")

        assert result.source == ResponseSource.PROVIDER
        assert provider.completion_calls == 2

    @pytest.mark.asyncio
    async def test_semantic_disabled(self, make_dispatcher, fake_provider, make_profile):
        embeddings = {"a b c": [1.0, 0.0], "a b c d": [1.0, 0.0]}
        dispatcher = make_dispatcher(embedding_candidate="e:m", use_semantic_cache=False)
        provider = fake_provider("e", "m", embeddings=embeddings)
        dispatcher.register(provider, make_profile("e", "m"))

        await dispatcher.dispatch("a b c")
        result = await dispatcher.dispatch("a b c d")

        assert result.source == ResponseSource.PROVIDER
        assert provider.embedding_calls == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_does_not_fail_request(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher(embedding_candidate="e:m")
        provider = fake_provider("e", "m", outcomes=["ok"], embeddings=None)
        dispatcher.register(provider, make_profile("e", "m"))

        result = await dispatcher.dispatch("hello")

        assert result.response.text == "ok"
        assert dispatcher.cache.stats().entries == 1
        assert dispatcher.cache.stats().semantic_entries == 0

    @pytest.mark.asyncio
    async def test_transient_embedding_failure_retried(
        self, make_dispatcher, fake_provider, make_profile
    ):
        embeddings = {"Q one": [1.0, 0.0], "Q two": [1.0, 0.01]}
        dispatcher = make_dispatcher(embedding_candidate="e:m")
        provider = fake_provider("e", "m", outcomes=["A"], embeddings=embeddings)
        dispatcher.register(
            provider,
            make_profile("e", "m"),
            executor=ResilientExecutor(
                min_interval_ms=0, max_retries=2, retry_base_delay_ms=0
            ),
        )
        await dispatcher.dispatch("Q one")

        original = provider.generate_embedding
        failures = [ProviderError("transient 503")]

        async def flaky_embedding(text):
            if failures:
                raise failures.pop()
            return await original(text)

        provider.generate_embedding = flaky_embedding
        result = await dispatcher.dispatch("Q two")

        assert result.source == ResponseSource.SEMANTIC_CACHE
        assert result.response.text == "A"
        assert provider.completion_calls == 1

    @pytest.mark.asyncio
    async def test_unsupported_embedding_not_retried(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher(embedding_candidate="e:m")
        provider = fake_provider("e", "m", outcomes=["ok"])
        calls = []

        async def no_embeddings(text):
            calls.append(text)
            raise UnsupportedOperationError("no embeddings", candidate="e:m")

        provider.generate_embedding = no_embeddings
        dispatcher.register(
            provider,
            make_profile("e", "m"),
            executor=ResilientExecutor(
                min_interval_ms=0, max_retries=3, retry_base_delay_ms=0
            ),
        )

        result = await dispatcher.dispatch("hello")

        assert result.response.text == "ok"
        # One call for the lookup, one for the cache write
        assert calls == ["hello", "hello"]

    @pytest.mark.asyncio
    async def test_preferred_candidate_used_for_embedding(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher(embedding_candidate="a:m")
        default = fake_provider("a", "m")
        preferred = fake_provider("b", "m", embeddings={"hello": [1.0, 0.0]})
        dispatcher.register(default, make_profile("a", "m"))
        dispatcher.register(preferred, make_profile("b", "m"))

        await dispatcher.dispatch("hello", RequestOptions(preferred_provider="b"))

        assert default.embedding_calls == 0
        assert preferred.embedding_calls == 1
        assert dispatcher.cache.stats().semantic_entries == 1


class TestErrors:
    """Errors surfaced to callers."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_empty_text_rejected(self, make_dispatcher, fake_provider, make_profile, text):
        dispatcher = make_dispatcher()
        provider = fake_provider("a", "m")
        dispatcher.register(provider, make_profile("a", "m"))

        with pytest.raises(ValidationError):
            await dispatcher.dispatch(text)

        assert provider.completion_calls == 0

    @pytest.mark.asyncio
    async def test_specific_models_without_list(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("a", "m"), make_profile("a", "m"))

        with pytest.raises(ConfigurationError):
            await dispatcher.dispatch(
                "hello", RequestOptions(fallback_strategy="specific-models")
            )

    @pytest.mark.asyncio
    async def test_specific_models_checked_before_cache(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("a", "m"), make_profile("a", "m"))
        await dispatcher.dispatch("hello")

        with pytest.raises(ConfigurationError):
            await dispatcher.dispatch(
                "hello",
                RequestOptions(fallback_strategy="specific-models", fallback_models=[]),
            )

    def test_select_candidates_validates(self, make_dispatcher):
        dispatcher = make_dispatcher()

        with pytest.raises(ValidationError):
            dispatcher.select_candidates("  ")


class TestMetrics:
    """Metrics recording."""

    @pytest.mark.asyncio
    async def test_provider_success_recorded(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("a", "m"), make_profile("a", "m", cost=0.001))

        result = await dispatcher.dispatch("What is DNS?")
        agg = dispatcher.metrics_store.get_aggregated()

        # FakeProvider reports 10 input and 5 output tokens
        assert result.estimated_cost_usd == pytest.approx(15 * 0.001)
        assert result.tier == ComplexityTier.SIMPLE
        assert agg.provider_requests == 1
        assert agg.requests_by_candidate["a:m"].total_units == 15
        assert agg.requests_by_tier == {"SIMPLE": 1}

    @pytest.mark.asyncio
    async def test_cache_hit_and_failure_recorded(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher()
        dispatcher.register(
            fake_provider("a", "m", outcomes=["ok", ProviderError("down")]),
            make_profile("a", "m"),
        )

        await dispatcher.dispatch("hello")
        await dispatcher.dispatch("hello")
        with pytest.raises(AllCandidatesFailedError):
            await dispatcher.dispatch("goodbye")

        agg = dispatcher.metrics_store.get_aggregated()
        assert agg.total_requests == 3
        assert agg.exact_cache_hits == 1
        assert agg.failed_requests == 1

    @pytest.mark.asyncio
    async def test_tier_not_set_for_cost_strategy(
        self, make_dispatcher, fake_provider, make_profile
    ):
        dispatcher = make_dispatcher()
        dispatcher.register(fake_provider("a", "m"), make_profile("a", "m"))

        result = await dispatcher.dispatch(
            "hello", RequestOptions(fallback_strategy="cost-ascending")
        )

        assert result.tier is None


class TestLifecycle:
    """start/stop and singleton access."""

    @pytest.mark.asyncio
    async def test_context_manager_runs_sweeper(self, make_dispatcher):
        dispatcher = make_dispatcher()

        async with dispatcher:
            assert dispatcher.is_started
            assert dispatcher.cache.sweeper_running

        assert not dispatcher.is_started
        assert not dispatcher.cache.sweeper_running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, make_dispatcher):
        dispatcher = make_dispatcher()
        await dispatcher.start()
        await dispatcher.start()
        await dispatcher.stop()
        await dispatcher.stop()

        assert not dispatcher.cache.sweeper_running

    @pytest.mark.asyncio
    async def test_concurrent_requests(self, make_dispatcher, fake_provider, make_profile):
        dispatcher = make_dispatcher()
        provider = fake_provider("a", "m", delay=0.01)
        dispatcher.register(provider, make_profile("a", "m"))

        results = await asyncio.gather(
            *(dispatcher.dispatch(f"question {i}") for i in range(5))
        )

        assert all(r.source == ResponseSource.PROVIDER for r in results)
        assert provider.completion_calls == 5

    def test_create_dispatcher_registers_configured_providers(self):
        settings = Settings(openai_api_key="sk-test", groq_api_key=None)
        dispatcher = create_dispatcher(settings)

        assert keys(dispatcher.candidates) == ["openai:gpt-4o-mini", "openai:gpt-4o"]
        assert isinstance(dispatcher.get_provider("openai:gpt-4o"), OpenAIProvider)

    def test_create_dispatcher_without_keys(self):
        settings = Settings(openai_api_key=None, groq_api_key=None)
        dispatcher = create_dispatcher(settings)

        assert dispatcher.candidates == []

    @pytest.mark.asyncio
    async def test_get_dispatcher_singleton(self):
        first = await get_dispatcher()
        second = await get_dispatcher()

        assert first is second
        assert first.is_started
        assert isinstance(first.get_provider("groq:llama-3.1-8b-instant"), GroqProvider)

        await shutdown_dispatcher()
        assert not first.is_started
