"""
Dispatcher - End-to-end request dispatch with fallback and caching.

For each request the dispatcher:
1. Checks the result cache (exact fingerprint, then embedding similarity)
2. Classifies the text's complexity when the ordering policy needs it
3. Filters registered candidates by preference, capability, and cost
4. Orders the eligible candidates by the requested fallback strategy
5. Tries candidates one at a time through their ResilientExecutor
6. Caches the first success (with an embedding when one can be obtained)
7. Raises AllCandidatesFailedError when no candidate produced a response

Candidates are never tried in parallel: fallback exists to avoid paying for
more than one successful call, not to hide latency.
"""

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass

from llm_router.cache.store import ResultCache, fingerprint
from llm_router.classifier.complexity import ComplexityClassifier, ComplexityTier
from llm_router.config import Settings, get_settings
from llm_router.dispatcher.executor import ResilientExecutor
from llm_router.errors import (
    AllCandidatesFailedError,
    ConfigurationError,
    ValidationError,
)
from llm_router.metrics.cost import get_cost_calculator
from llm_router.metrics.store import DispatchMetric, MetricsStore, get_metrics_store
from llm_router.providers.base import CapabilityProvider, CompletionResponse
from llm_router.registry.models import (
    DEFAULT_PROFILES,
    Capability,
    CapabilityProfile,
    ModelRegistry,
)
from llm_router.schemas.dispatch import FallbackStrategy, RequestOptions, ResponseSource

logger = logging.getLogger(__name__)


# Capability ranked by the capability-descending strategy for each tier
TIER_CAPABILITY: dict[ComplexityTier, Capability] = {
    ComplexityTier.SIMPLE: Capability.SPEED,
    ComplexityTier.MODERATE: Capability.KNOWLEDGE,
    ComplexityTier.COMPLEX: Capability.REASONING,
}

# Weights of the SIMPLE-tier composite score
SIMPLE_SPEED_WEIGHT = 0.7
SIMPLE_COST_WEIGHT = 0.3


def adaptive_score(
    profile: CapabilityProfile, tier: ComplexityTier, max_unit_cost: float
) -> float:
    """
    Complexity-adaptive ranking score used when no strategy is set.

    SIMPLE favours fast, cheap candidates; MODERATE averages knowledge and
    reasoning; COMPLEX ranks by reasoning alone.

    Args:
        profile: Candidate to score
        tier: Complexity tier of the request
        max_unit_cost: Highest unit cost among the eligible candidates

    Returns:
        Score on the 0-10 scale, higher is better
    """
    if tier == ComplexityTier.SIMPLE:
        if max_unit_cost > 0:
            cost_score = 10 * (1 - profile.unit_cost / max_unit_cost)
        else:
            cost_score = 10.0
        return (
            SIMPLE_SPEED_WEIGHT * profile.rating(Capability.SPEED)
            + SIMPLE_COST_WEIGHT * cost_score
        )
    if tier == ComplexityTier.MODERATE:
        return (
            profile.rating(Capability.KNOWLEDGE) + profile.rating(Capability.REASONING)
        ) / 2
    return profile.rating(Capability.REASONING)


@dataclass
class DispatchResult:
    """
    Outcome of a dispatched request.

    Attributes:
        response: The completion returned to the caller
        source: Cache tier or provider that produced the response
        latency_ms: End-to-end dispatch time in milliseconds
        candidate: Routing key that answered (None for cache hits)
        tier: Complexity tier, if classification ran
        attempts: Candidates tried, including the successful one
        estimated_cost_usd: Approximate provider cost (None for cache hits)
    """

    response: CompletionResponse
    source: ResponseSource
    latency_ms: float
    candidate: str | None = None
    tier: ComplexityTier | None = None
    attempts: int = 0
    estimated_cost_usd: float | None = None

    @property
    def cached(self) -> bool:
        """Whether the response was served from the cache."""
        return self.source != ResponseSource.PROVIDER


class Dispatcher:
    """
    Cost- and capability-aware request dispatcher.

    The dispatcher owns its candidate registry, one ResilientExecutor per
    candidate, and one ResultCache. Register candidates before serving
    traffic; afterwards the registry is read-only.

    Usage:
        dispatcher = Dispatcher()
        dispatcher.register(OpenAIProvider("gpt-4o-mini"), profile)
        async with dispatcher:
            response = await dispatcher.process_request("What is DNS?")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: ResultCache | None = None,
        classifier: ComplexityClassifier | None = None,
        metrics_store: MetricsStore | None = None,
        use_semantic_cache: bool | None = None,
        embedding_candidate: str | None = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            settings: Settings to read defaults from (global settings if None)
            cache: Result cache; built from settings if None
            classifier: Complexity classifier; default rules if None
            metrics_store: Metrics sink; global store if None and cost
                           tracking is enabled
            use_semantic_cache: Override settings.semantic_cache_enabled
            embedding_candidate: Override settings.embedding_candidate
        """
        self._settings = settings or get_settings()
        self._registry = ModelRegistry()
        self._providers: dict[str, CapabilityProvider] = {}
        self._executors: dict[str, ResilientExecutor] = {}

        self._cache = cache or ResultCache(
            similarity_threshold=self._settings.similarity_threshold,
            default_ttl_seconds=self._settings.cache_ttl_seconds,
        )
        self._classifier = classifier or ComplexityClassifier()

        if metrics_store is None and self._settings.track_costs:
            metrics_store = get_metrics_store()
        self._metrics = metrics_store

        self._use_semantic = (
            self._settings.semantic_cache_enabled
            if use_semantic_cache is None
            else use_semantic_cache
        )
        self._embedding_candidate = (
            embedding_candidate or self._settings.embedding_candidate
        )
        self._started = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        provider: CapabilityProvider,
        profile: CapabilityProfile,
        executor: ResilientExecutor | None = None,
    ) -> None:
        """
        Register a candidate.

        Args:
            provider: Capability provider serving the candidate
            profile: Capability profile of the candidate
            executor: Executor to route calls through; built from settings
                      if None

        Raises:
            ConfigurationError: If the candidate key is already registered
        """
        self._registry.register(profile)
        self._providers[profile.key] = provider
        self._executors[profile.key] = executor or ResilientExecutor(
            min_interval_ms=self._settings.min_request_interval_ms,
            default_timeout_ms=self._settings.request_timeout_ms,
            max_retries=self._settings.max_retries,
            retry_base_delay_ms=self._settings.retry_base_delay_ms,
        )
        logger.debug(f"Registered candidate {profile.key}")

    def register_many(
        self, pairs: Iterable[tuple[CapabilityProvider, CapabilityProfile]]
    ) -> None:
        """Register several (provider, profile) pairs in order."""
        for provider, profile in pairs:
            self.register(provider, profile)

    @property
    def candidates(self) -> list[CapabilityProfile]:
        """All registered profiles in registration order."""
        return self._registry.list_profiles()

    @property
    def registry(self) -> ModelRegistry:
        return self._registry

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def metrics_store(self) -> MetricsStore | None:
        return self._metrics

    def get_provider(self, key: str) -> CapabilityProvider | None:
        return self._providers.get(key)

    def get_executor(self, key: str) -> ResilientExecutor | None:
        return self._executors.get(key)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Start background maintenance (the cache expiry sweeper)."""
        if self._started:
            return
        self._cache.start_sweeper(self._settings.cache_cleanup_interval_seconds)
        self._started = True
        logger.info(f"Dispatcher started with {len(self._registry)} candidates")

    async def stop(self) -> None:
        """Stop background maintenance."""
        if not self._started:
            return
        await self._cache.stop_sweeper()
        self._started = False
        logger.info("Dispatcher stopped")

    async def __aenter__(self) -> "Dispatcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Candidate selection
    # ------------------------------------------------------------------

    def _check_request(self, text: str, options: RequestOptions) -> None:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Request text must be a non-empty string")
        if (
            options.fallback_strategy == FallbackStrategy.SPECIFIC_MODELS
            and not options.fallback_models
        ):
            raise ConfigurationError(
                "fallback_models must be specified when using the specific-models strategy"
            )

    def eligible_candidates(self, options: RequestOptions) -> list[CapabilityProfile]:
        """
        Apply preference, capability, and cost filters.

        An empty result is not an error here; the request fails later with
        AllCandidatesFailedError after attempting zero candidates.
        """
        eligible = self._registry.list_profiles()

        if options.preferred_provider:
            eligible = [p for p in eligible if p.provider == options.preferred_provider]

        if options.preferred_model:
            eligible = [p for p in eligible if p.model == options.preferred_model]

        if options.min_capability:
            for capability, minimum in options.min_capability.items():
                eligible = [p for p in eligible if p.rating(capability) >= minimum]

        if options.max_cost is not None:
            eligible = [p for p in eligible if p.estimate_cost() <= options.max_cost]

        return eligible

    def order_candidates(
        self,
        eligible: list[CapabilityProfile],
        options: RequestOptions,
        tier: ComplexityTier | None,
    ) -> list[CapabilityProfile]:
        """Order eligible candidates according to options.fallback_strategy."""
        strategy = options.fallback_strategy

        if strategy == FallbackStrategy.COST_ASCENDING:
            return sorted(eligible, key=lambda p: p.unit_cost)

        if strategy == FallbackStrategy.SPECIFIC_MODELS:
            by_key = {p.key: p for p in eligible}
            ordered: list[CapabilityProfile] = []
            for key in options.fallback_models or []:
                profile = by_key.pop(key, None)
                if profile is not None:
                    ordered.append(profile)
            return ordered

        tier = tier or ComplexityTier.SIMPLE

        if strategy == FallbackStrategy.CAPABILITY_DESCENDING:
            capability = TIER_CAPABILITY[tier]
            return sorted(eligible, key=lambda p: p.rating(capability), reverse=True)

        max_unit_cost = max((p.unit_cost for p in eligible), default=0.0)
        return sorted(
            eligible,
            key=lambda p: adaptive_score(p, tier, max_unit_cost),
            reverse=True,
        )

    def _select(
        self, text: str, options: RequestOptions
    ) -> tuple[list[CapabilityProfile], ComplexityTier | None]:
        tier = None
        if options.fallback_strategy in (None, FallbackStrategy.CAPABILITY_DESCENDING):
            tier = self._classifier.classify(text)

        eligible = self.eligible_candidates(options)
        ordered = self.order_candidates(eligible, options, tier)

        logger.debug(
            f"Candidate order (strategy={options.fallback_strategy}, tier={tier}): "
            f"{[p.key for p in ordered]}"
        )
        return ordered, tier

    def select_candidates(
        self, text: str, options: RequestOptions | None = None
    ) -> list[CapabilityProfile]:
        """
        Return the ordered candidate list a request would try.

        Raises:
            ValidationError: If text is empty
            ConfigurationError: If specific-models is used without a list
        """
        options = options or RequestOptions()
        self._check_request(text, options)
        return self._select(text, options)[0]

    # ------------------------------------------------------------------
    # Cache helpers
    # ------------------------------------------------------------------

    def _embedding_source(self, options: RequestOptions) -> str | None:
        if options.preferred_provider or options.preferred_model:
            for profile in self._registry.list_profiles():
                if options.preferred_provider and profile.provider != options.preferred_provider:
                    continue
                if options.preferred_model and profile.model != options.preferred_model:
                    continue
                return profile.key
            return None

        if self._embedding_candidate in self._providers:
            return self._embedding_candidate
        return None

    async def _embed(self, key: str, text: str) -> list[float] | None:
        provider = self._providers[key]
        executor = self._executors[key]
        try:
            return await executor.execute(
                lambda: provider.generate_embedding(text),
                timeout_ms=self._settings.request_timeout_ms,
                label=f"{key} embedding",
            )
        except Exception as e:
            logger.debug(f"Embedding via {key} unavailable: {e}")
            return None

    def _find_similar(self, embedding: list[float]) -> CompletionResponse | None:
        try:
            return self._cache.find_similar(embedding)
        except Exception:
            logger.warning("Semantic cache lookup failed", exc_info=True)
            return None

    async def _populate_cache(
        self,
        key: str,
        text: str,
        response: CompletionResponse,
        candidate: str,
        lookup_embedding: list[float] | None,
        lookup_source: str | None,
    ) -> None:
        embedding = None
        if self._use_semantic:
            if lookup_embedding is not None and lookup_source == candidate:
                embedding = lookup_embedding
            else:
                embedding = await self._embed(candidate, text)

        try:
            self._cache.put(key, text, response, embedding=embedding)
        except Exception:
            logger.warning("Failed to write cache entry", exc_info=True)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def process_request(
        self, text: str, options: RequestOptions | None = None
    ) -> CompletionResponse:
        """
        Dispatch a request and return the response.

        Raises:
            ValidationError: If text is empty
            ConfigurationError: If the options are inconsistent
            AllCandidatesFailedError: If no candidate produced a response
        """
        result = await self.dispatch(text, options)
        return result.response

    async def dispatch(
        self, text: str, options: RequestOptions | None = None
    ) -> DispatchResult:
        """
        Dispatch a request and return the response with routing details.

        Same contract as process_request().
        """
        options = options or RequestOptions()
        self._check_request(text, options)

        start_time = time.perf_counter()
        key = fingerprint(text)
        caching = options.cache_results and self._settings.cache_enabled

        lookup_embedding: list[float] | None = None
        lookup_source: str | None = None

        if caching:
            cached = self._cache.get(key)
            if cached is not None:
                logger.info(f"Exact cache hit for {key[:12]}")
                return self._cache_result(cached, ResponseSource.EXACT_CACHE, start_time)

            if self._use_semantic:
                lookup_source = self._embedding_source(options)
                if lookup_source is not None:
                    lookup_embedding = await self._embed(lookup_source, text)
                if lookup_embedding is not None:
                    similar = self._find_similar(lookup_embedding)
                    if similar is not None:
                        logger.info(f"Semantic cache hit for {key[:12]}")
                        return self._cache_result(
                            similar, ResponseSource.SEMANTIC_CACHE, start_time
                        )

        ordered, tier = self._select(text, options)
        if not ordered:
            logger.warning(f"No eligible candidates for request {key[:12]}")

        attempted = 0
        for profile in ordered:
            attempted += 1
            provider = self._providers[profile.key]
            executor = self._executors[profile.key]

            try:
                response = await executor.execute(
                    lambda: provider.generate_completion(text, options),
                    timeout_ms=options.timeout_ms,
                    label=profile.key,
                )
            except Exception as e:
                logger.warning(
                    f"Candidate {profile.key} failed ({attempted}/{len(ordered)}): "
                    f"{type(e).__name__}: {e}"
                )
                continue

            if caching:
                await self._populate_cache(
                    key, text, response, profile.key, lookup_embedding, lookup_source
                )

            return self._provider_result(
                response, profile, provider, text, tier, attempted, start_time
            )

        logger.error(
            f"All candidates failed for request {key[:12]} ({attempted} attempted)"
        )
        if self._metrics is not None:
            self._metrics.record_failure()
        raise AllCandidatesFailedError(key, attempted)

    def _cache_result(
        self,
        response: CompletionResponse,
        source: ResponseSource,
        start_time: float,
    ) -> DispatchResult:
        latency_ms = (time.perf_counter() - start_time) * 1000
        if self._metrics is not None:
            self._metrics.record(
                DispatchMetric(
                    timestamp=time.time(), source=source.value, latency_ms=latency_ms
                )
            )
        return DispatchResult(response=response, source=source, latency_ms=latency_ms)

    def _provider_result(
        self,
        response: CompletionResponse,
        profile: CapabilityProfile,
        provider: CapabilityProvider,
        text: str,
        tier: ComplexityTier | None,
        attempts: int,
        start_time: float,
    ) -> DispatchResult:
        latency_ms = (time.perf_counter() - start_time) * 1000

        input_units = response.usage.input_tokens or provider.estimate_units(text)
        output_units = response.usage.output_tokens or provider.estimate_units(
            response.text
        )
        cost = get_cost_calculator().calculate(profile, input_units, output_units)

        logger.info(
            f"Dispatched to {profile.key}: attempts={attempts}, "
            f"latency={latency_ms:.0f}ms, est_cost=${cost.total_cost_usd:.6f}"
        )

        if self._metrics is not None:
            self._metrics.record(
                DispatchMetric(
                    timestamp=time.time(),
                    source=ResponseSource.PROVIDER.value,
                    latency_ms=latency_ms,
                    candidate=profile.key,
                    tier=tier.value if tier is not None else None,
                    attempts=attempts,
                    input_units=input_units,
                    output_units=output_units,
                    cost_usd=cost.total_cost_usd,
                )
            )

        return DispatchResult(
            response=response,
            source=ResponseSource.PROVIDER,
            latency_ms=latency_ms,
            candidate=profile.key,
            tier=tier,
            attempts=attempts,
            estimated_cost_usd=cost.total_cost_usd,
        )


# ----------------------------------------------------------------------
# Bootstrap and singleton access
# ----------------------------------------------------------------------


def create_dispatcher(settings: Settings | None = None) -> Dispatcher:
    """
    Build a dispatcher with the bundled profiles whose API keys are set.

    Args:
        settings: Settings to use (global settings if None)

    Returns:
        A dispatcher that has not been started yet
    """
    from llm_router.providers.groq_provider import GroqProvider
    from llm_router.providers.openai_provider import OpenAIProvider

    settings = settings or get_settings()
    dispatcher = Dispatcher(settings=settings)

    for profile in DEFAULT_PROFILES:
        if profile.provider == "openai" and settings.openai_api_key is not None:
            dispatcher.register(OpenAIProvider(profile.model), profile)
        elif profile.provider == "groq" and settings.groq_api_key is not None:
            dispatcher.register(GroqProvider(profile.model), profile)

    if not dispatcher.candidates:
        logger.warning("No provider API keys configured; every request will fail")

    return dispatcher


_dispatcher_instance: Dispatcher | None = None


async def get_dispatcher() -> Dispatcher:
    """
    Get the global dispatcher instance.

    Creates and starts the dispatcher on first call. Subsequent calls
    return the same instance.
    """
    global _dispatcher_instance

    if _dispatcher_instance is None:
        _dispatcher_instance = create_dispatcher()
        await _dispatcher_instance.start()

    return _dispatcher_instance


async def shutdown_dispatcher() -> None:
    """Stop and discard the global dispatcher instance."""
    global _dispatcher_instance

    if _dispatcher_instance is not None:
        await _dispatcher_instance.stop()
        _dispatcher_instance = None


def reset_dispatcher() -> None:
    """
    Reset the global dispatcher instance.

    This is primarily useful for testing to ensure a fresh
    dispatcher is created between test runs.
    """
    global _dispatcher_instance
    _dispatcher_instance = None
