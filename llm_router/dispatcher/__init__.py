"""
Dispatcher Module: Candidate Selection, Fallback, and Resilient Execution

Components:
    Dispatcher: Filters, orders, and tries candidates for each request
    DispatchResult: Response plus routing details (source, candidate, attempts)
    ResilientExecutor: Pacing, per-attempt timeout, and retry with backoff

Singleton Access:
    get_dispatcher(): Returns the global started Dispatcher
    shutdown_dispatcher(): Stops and discards the global Dispatcher
"""

from llm_router.dispatcher.engine import (
    TIER_CAPABILITY,
    Dispatcher,
    DispatchResult,
    adaptive_score,
    create_dispatcher,
    get_dispatcher,
    reset_dispatcher,
    shutdown_dispatcher,
)
from llm_router.dispatcher.executor import ResilientExecutor


__all__ = [
    "Dispatcher",
    "DispatchResult",
    "ResilientExecutor",
    "TIER_CAPABILITY",
    "adaptive_score",
    "create_dispatcher",
    "get_dispatcher",
    "reset_dispatcher",
    "shutdown_dispatcher",
]
