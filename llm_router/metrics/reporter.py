"""
Metrics Reporter for API Responses

Transforms raw aggregated metrics into the MetricsResponse schema with
computed fields like averages and cache hit rate.
"""

from llm_router.cache.store import CacheStats
from llm_router.metrics.store import MetricsStore, get_metrics_store
from llm_router.schemas.dispatch import CandidateMetrics, MetricsResponse


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class MetricsReporter:
    """
    Generate metrics reports from aggregated data.

    Example:
        reporter = MetricsReporter()
        response = reporter.generate_report(cache.stats())
    """

    def __init__(self, store: MetricsStore | None = None):
        """
        Args:
            store: MetricsStore instance to report from.
                   If None, uses the global singleton.
        """
        self._store = store or get_metrics_store()

    def generate_report(self, cache_stats: CacheStats | None = None) -> MetricsResponse:
        """
        Generate a complete metrics report.

        Args:
            cache_stats: Optional cache snapshot for the live entry count

        Returns:
            MetricsResponse ready for API serialization
        """
        agg = self._store.get_aggregated()

        candidates = {
            key: CandidateMetrics(
                candidate=key,
                request_count=data.count,
                total_tokens=data.total_units,
                total_cost_usd=round(data.total_cost, 10),
                avg_latency_ms=round(_mean(data.latencies), 2),
            )
            for key, data in agg.requests_by_candidate.items()
        }

        cache_hits = agg.exact_cache_hits + agg.semantic_cache_hits
        hit_rate = cache_hits / agg.total_requests if agg.total_requests else 0.0
        avg_attempts = (
            agg.total_attempts / agg.provider_requests if agg.provider_requests else 0.0
        )

        return MetricsResponse(
            total_requests=agg.total_requests,
            failed_requests=agg.failed_requests,
            exact_cache_hits=agg.exact_cache_hits,
            semantic_cache_hits=agg.semantic_cache_hits,
            cache_hit_rate=round(hit_rate, 4),
            cache_entries=cache_stats.entries if cache_stats else 0,
            requests_by_candidate=candidates,
            requests_by_tier=dict(agg.requests_by_tier),
            total_cost_usd=round(agg.total_cost, 10),
            avg_latency_ms=round(_mean(agg.latencies), 2),
            avg_attempts=round(avg_attempts, 2),
        )
