"""
Metrics Store for Dispatch Tracking

Aggregates per-request metrics for analysis and reporting. In-memory only;
counters reset with the process.

The store is thread-safe using threading.Lock to handle concurrent
requests in FastAPI's async environment.
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field


@dataclass
class DispatchMetric:
    """
    Individual dispatch metric record.

    Attributes:
        timestamp: Unix timestamp when the request completed
        source: "exact_cache", "semantic_cache", or "provider"
        candidate: Routing key that answered (None for cache hits)
        tier: Complexity tier value, if classification ran
        attempts: Candidates tried (0 for cache hits)
        latency_ms: End-to-end dispatch time in milliseconds
        input_units: Input units of the provider call
        output_units: Output units of the provider call
        cost_usd: Estimated cost of the provider call
    """

    timestamp: float
    source: str
    latency_ms: float
    candidate: str | None = None
    tier: str | None = None
    attempts: int = 0
    input_units: int = 0
    output_units: int = 0
    cost_usd: float = 0.0

    @property
    def total_units(self) -> int:
        """Total units processed (input + output)."""
        return self.input_units + self.output_units


@dataclass
class _CandidateAggregate:
    """Internal aggregate for per-candidate metrics."""

    count: int = 0
    total_units: int = 0
    total_cost: float = 0.0
    latencies: list[float] = field(default_factory=list)


@dataclass
class AggregatedMetrics:
    """
    Aggregated metrics snapshot for reporting.

    All fields are snapshots captured at a specific moment.
    """

    total_requests: int = 0
    failed_requests: int = 0
    exact_cache_hits: int = 0
    semantic_cache_hits: int = 0
    total_cost: float = 0.0
    total_attempts: int = 0
    provider_requests: int = 0

    requests_by_candidate: dict[str, _CandidateAggregate] = field(
        default_factory=lambda: defaultdict(_CandidateAggregate)
    )
    requests_by_tier: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    latencies: list[float] = field(default_factory=list)


class MetricsStore:
    """
    Thread-safe in-memory metrics storage.

    Example:
        store = MetricsStore()
        store.record(DispatchMetric(
            timestamp=time.time(),
            source="provider",
            candidate="openai:gpt-4o-mini",
            latency_ms=420.0,
            ...
        ))
        aggregated = store.get_aggregated()
    """

    def __init__(self, max_history: int = 10000):
        """
        Initialize the metrics store.

        Args:
            max_history: Maximum individual metrics to retain.
                         Aggregates are preserved regardless of this limit.
        """
        self._lock = threading.Lock()
        self._max_history = max_history
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._metrics: list[DispatchMetric] = []
        self._total_requests = 0
        self._failed_requests = 0
        self._exact_hits = 0
        self._semantic_hits = 0
        self._total_cost = 0.0
        self._total_attempts = 0
        self._provider_requests = 0
        self._by_candidate: dict[str, _CandidateAggregate] = defaultdict(
            _CandidateAggregate
        )
        self._by_tier: dict[str, int] = defaultdict(int)
        self._latencies: list[float] = []

    def record(self, metric: DispatchMetric) -> None:
        """
        Record a successful dispatch.

        Args:
            metric: The dispatch metric to record
        """
        with self._lock:
            self._metrics.append(metric)
            if len(self._metrics) > self._max_history:
                self._metrics = self._metrics[-self._max_history :]

            self._total_requests += 1
            self._latencies.append(metric.latency_ms)
            if len(self._latencies) > self._max_history:
                self._latencies = self._latencies[-self._max_history :]

            if metric.source == "exact_cache":
                self._exact_hits += 1
                return
            if metric.source == "semantic_cache":
                self._semantic_hits += 1
                return

            self._provider_requests += 1
            self._total_cost += metric.cost_usd
            self._total_attempts += metric.attempts
            if metric.tier is not None:
                self._by_tier[metric.tier] += 1

            if metric.candidate is not None:
                agg = self._by_candidate[metric.candidate]
                agg.count += 1
                agg.total_units += metric.total_units
                agg.total_cost += metric.cost_usd
                agg.latencies.append(metric.latency_ms)
                if len(agg.latencies) > self._max_history:
                    agg.latencies = agg.latencies[-self._max_history :]

    def record_failure(self) -> None:
        """Record a request that ended with every candidate failing."""
        with self._lock:
            self._total_requests += 1
            self._failed_requests += 1

    def get_aggregated(self) -> AggregatedMetrics:
        """
        Get current aggregated metrics.

        Returns:
            AggregatedMetrics snapshot, safe to use outside the lock
        """
        with self._lock:
            by_candidate_copy = {
                key: _CandidateAggregate(
                    count=agg.count,
                    total_units=agg.total_units,
                    total_cost=agg.total_cost,
                    latencies=list(agg.latencies),
                )
                for key, agg in self._by_candidate.items()
            }

            return AggregatedMetrics(
                total_requests=self._total_requests,
                failed_requests=self._failed_requests,
                exact_cache_hits=self._exact_hits,
                semantic_cache_hits=self._semantic_hits,
                total_cost=self._total_cost,
                total_attempts=self._total_attempts,
                provider_requests=self._provider_requests,
                requests_by_candidate=by_candidate_copy,
                requests_by_tier=dict(self._by_tier),
                latencies=list(self._latencies),
            )

    def get_recent(self, count: int = 100) -> list[DispatchMetric]:
        """Return copies of the most recent metrics."""
        with self._lock:
            return list(self._metrics[-count:])

    def reset(self) -> None:
        """Clear all stored data and aggregates."""
        with self._lock:
            self._reset_locked()


_store: MetricsStore | None = None


def get_metrics_store() -> MetricsStore:
    """
    Get the global metrics store instance.

    Returns:
        Singleton MetricsStore instance
    """
    global _store
    if _store is None:
        _store = MetricsStore()
    return _store
