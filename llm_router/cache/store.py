"""
Result Cache for Completed Responses

Two indices over the same entries:
- Exact index: fingerprint -> entry, for byte-identical (normalized) requests
- Semantic index: append-only list of entries that carried an embedding,
  scanned by cosine similarity for near-duplicate requests

Entries are never mutated. A put with an existing fingerprint replaces the
exact-index entry while the superseded entry stays in the semantic index
until it expires. Expired entries are evicted lazily on lookup, before
every semantic scan, and by an optional background sweeper task.

The cache is thread-safe using threading.Lock; no lock is held across an
await point.
"""

import asyncio
import hashlib
import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from llm_router.cache.similarity import cosine_similarity
from llm_router.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SIMILARITY_THRESHOLD = 0.95


def fingerprint(text: str) -> str:
    """
    Deterministic cache key for request text.

    Whitespace is normalized (trimmed, runs collapsed) before hashing so
    that trivially reformatted requests share a key.
    """
    normalized = " ".join(text.split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    """
    One cached response.

    Attributes:
        fingerprint: Exact-index key
        text: Request text the response was produced for
        response: Opaque response payload returned to callers
        created_at: Unix timestamp of insertion
        expires_at: Unix timestamp after which the entry is invalid
        embedding: Request embedding, present only for semantic entries
    """

    fingerprint: str
    text: str
    response: Any
    created_at: float
    expires_at: float
    embedding: tuple[float, ...] | None = None

    def is_expired(self, now: float) -> bool:
        """Entry is invalid once the current time passes expires_at."""
        return now > self.expires_at


@dataclass
class CacheStats:
    """
    Point-in-time snapshot of cache size and hit counters.

    Exact and semantic misses are counted per tier. A semantic lookup
    normally follows an exact miss for the same request, so ``misses``
    reports requests that neither tier answered.
    """

    entries: int = 0
    semantic_entries: int = 0
    exact_hits: int = 0
    semantic_hits: int = 0
    exact_misses: int = 0
    semantic_misses: int = 0

    @property
    def misses(self) -> int:
        return max(self.exact_misses - self.semantic_hits, self.semantic_misses)

    @property
    def hit_rate(self) -> float:
        """Share of lookups answered from the cache."""
        hits = self.exact_hits + self.semantic_hits
        lookups = hits + self.misses
        if lookups == 0:
            return 0.0
        return hits / lookups


class ResultCache:
    """
    In-process exact + semantic response cache.

    Example:
        cache = ResultCache(similarity_threshold=0.9)
        key = fingerprint("What is the capital of France?")
        cache.put(key, "What is the capital of France?", response, embedding=vec)
        cache.get(key)              # -> response
        cache.find_similar(vec2)    # -> response if cosine(vec, vec2) > 0.9
    """

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            similarity_threshold: Default exclusive lower bound for semantic hits
            default_ttl_seconds: Lifetime applied when put() gets no ttl
            clock: Time source in seconds, injectable for tests
        """
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._semantic: list[CacheEntry] = []
        self._similarity_threshold = similarity_threshold
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock

        self._exact_hits = 0
        self._semantic_hits = 0
        self._exact_misses = 0
        self._semantic_misses = 0

        self._sweeper: asyncio.Task | None = None

    @property
    def similarity_threshold(self) -> float:
        return self._similarity_threshold

    @property
    def default_ttl_seconds(self) -> float:
        return self._default_ttl_seconds

    def get(self, key: str) -> Any | None:
        """
        Look up a response by fingerprint.

        Returns:
            The cached response, or None if absent or expired. An expired
            entry is removed from the exact index.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._exact_misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._exact_misses += 1
                return None
            self._exact_hits += 1
            return entry.response

    def put(
        self,
        key: str,
        text: str,
        response: Any,
        embedding: Sequence[float] | None = None,
        ttl_seconds: float | None = None,
    ) -> CacheEntry:
        """
        Insert a response unconditionally.

        Args:
            key: Fingerprint of the request text
            text: Request text
            response: Response payload
            embedding: Optional request embedding; enables semantic lookup
            ttl_seconds: Lifetime override, defaults to default_ttl_seconds

        Returns:
            The stored entry
        """
        now = self._clock()
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        entry = CacheEntry(
            fingerprint=key,
            text=text,
            response=response,
            created_at=now,
            expires_at=now + ttl,
            embedding=tuple(float(x) for x in embedding) if embedding else None,
        )

        with self._lock:
            self._entries[key] = entry
            if entry.embedding is not None:
                self._semantic.append(entry)

        return entry

    def find_similar(
        self, embedding: Sequence[float], threshold: float | None = None
    ) -> Any | None:
        """
        Find the response of the most similar unexpired semantic entry.

        Only scores strictly above the threshold count. On equal best
        scores the earliest inserted entry wins.

        Args:
            embedding: Embedding of the incoming request
            threshold: Override for the default similarity threshold

        Returns:
            The best matching response, or None
        """
        limit = self._similarity_threshold if threshold is None else threshold

        with self._lock:
            now = self._clock()
            self._sweep_locked(now)

            best: CacheEntry | None = None
            best_score = 0.0
            for entry in self._semantic:
                if entry.embedding is None or entry.is_expired(now):
                    continue
                try:
                    score = cosine_similarity(embedding, entry.embedding)
                except DimensionMismatchError as e:
                    logger.warning(
                        f"Skipping cache entry {entry.fingerprint[:12]} in semantic scan: {e}"
                    )
                    continue
                if score > limit and (best is None or score > best_score):
                    best = entry
                    best_score = score

            if best is None:
                self._semantic_misses += 1
                return None

            self._semantic_hits += 1
            logger.debug(
                f"Semantic cache hit {best.fingerprint[:12]} (similarity={best_score:.4f})"
            )
            return best.response

    def sweep(self) -> int:
        """
        Remove every expired entry from both indices.

        Returns:
            Number of entries removed across both indices
        """
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired_keys = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired_keys:
            del self._entries[k]

        before = len(self._semantic)
        self._semantic = [e for e in self._semantic if not e.is_expired(now)]

        return len(expired_keys) + (before - len(self._semantic))

    def stats(self) -> CacheStats:
        """Return a snapshot of sizes and hit counters."""
        with self._lock:
            return CacheStats(
                entries=len(self._entries),
                semantic_entries=len(self._semantic),
                exact_hits=self._exact_hits,
                semantic_hits=self._semantic_hits,
                exact_misses=self._exact_misses,
                semantic_misses=self._semantic_misses,
            )

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        with self._lock:
            self._entries.clear()
            self._semantic.clear()
            self._exact_hits = 0
            self._semantic_hits = 0
            self._exact_misses = 0
            self._semantic_misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # Background sweeper lifecycle

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval_seconds: float) -> None:
        """
        Start the periodic expiry sweep on the running event loop.

        Calling this while a sweeper is already running is a no-op.
        """
        if self.sweeper_running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(
            self._run_sweeper(interval_seconds), name="result-cache-sweeper"
        )
        logger.debug(f"Cache sweeper started (interval={interval_seconds}s)")

    async def stop_sweeper(self) -> None:
        """Cancel the sweeper task and wait for it to finish."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.debug("Cache sweeper stopped")

    async def _run_sweeper(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            removed = self.sweep()
            if removed:
                logger.info(f"Cache sweep removed {removed} expired entries")
