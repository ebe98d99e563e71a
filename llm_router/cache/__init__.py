"""
Cache module: Exact and semantic response caching.

This module contains:
- similarity.py: Cosine similarity over embedding vectors
- store.py: ResultCache with exact and semantic indices and TTL expiry

Public API:
- cosine_similarity(): Normalized similarity of two vectors
- fingerprint(): Deterministic key for request text
- CacheEntry: Immutable cached response record
- CacheStats: Size and hit counter snapshot
- ResultCache: The two-tier cache
"""

from llm_router.cache.similarity import cosine_similarity
from llm_router.cache.store import (
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    CacheStats,
    ResultCache,
    fingerprint,
)

__all__ = [
    "cosine_similarity",
    "fingerprint",
    "CacheEntry",
    "CacheStats",
    "ResultCache",
    "DEFAULT_SIMILARITY_THRESHOLD",
    "DEFAULT_TTL_SECONDS",
]
