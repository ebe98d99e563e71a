"""
Metrics Module: Cost Estimation, Storage, and Reporting

Components:
    CostCalculator: Estimate per-request cost from candidate pricing
    CostBreakdown: Cost information for a single provider call
    MetricsStore: Thread-safe in-memory metrics aggregation
    DispatchMetric: Individual request metric record
    AggregatedMetrics: Pre-computed aggregates for reporting
    MetricsReporter: Generate MetricsResponse for the /metrics endpoint

Singleton Access:
    get_cost_calculator(): Returns global CostCalculator instance
    get_metrics_store(): Returns global MetricsStore instance
"""

from llm_router.metrics.cost import (
    CostBreakdown,
    CostCalculator,
    get_cost_calculator,
)
from llm_router.metrics.store import (
    AggregatedMetrics,
    DispatchMetric,
    MetricsStore,
    get_metrics_store,
)
from llm_router.metrics.reporter import MetricsReporter


__all__ = [
    "CostCalculator",
    "CostBreakdown",
    "get_cost_calculator",
    "MetricsStore",
    "DispatchMetric",
    "AggregatedMetrics",
    "get_metrics_store",
    "MetricsReporter",
]
