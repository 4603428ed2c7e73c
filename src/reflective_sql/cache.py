"""In-memory result cache for answered questions.

Maps (normalized question, language, schema fingerprint) to the SQL, rows
and explanation of a successful query.

Key Design:
- Cache key: SHA256 of the normalized question, plus language and schema
  fingerprint, so a schema change never serves stale SQL
- Normalization lowercases, collapses whitespace, strips sentence
  punctuation (¿ ? ¡ ! .) and replaces dates/numbers with placeholders
  ("sales for 2024-01-01" and "sales for 2024-06-30" share an entry)
- TTL depends on the generated SQL: metadata 1h, aggregates 15m, other 5m
- When full, the entry with the oldest creation time is evicted
- Table-scoped invalidation is a substring match on the stored SQL
- Only successful results are cached
- All mutations happen under one lock; rows are copied in and out so
  callers never alias cached data

Example:
    >>> cache = ResultCache(max_size=100, cleanup_interval_seconds=0)
    >>> cache.store("How many products?", "en", fingerprint,
    ...             "SELECT COUNT(*) FROM products", [{"count": 42}], "There are 42.", 12.5)
    >>> cache.lookup("how many   products", "en", fingerprint).sql
    'SELECT COUNT(*) FROM products'
"""
import copy
import hashlib
import json
import re
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .logging import logger


class TTLTier(Enum):
    METADATA = "metadata"
    AGGREGATE = "aggregate"
    DEFAULT = "default"


TTL_SECONDS = {
    TTLTier.METADATA: 3600,   # 1 hour
    TTLTier.AGGREGATE: 900,   # 15 minutes
    TTLTier.DEFAULT: 300,     # 5 minutes
}

METADATA_PATTERN = re.compile(
    r"^\s*(?:SHOW\b|DESCRIBE\b|DESC\b)|\bINFORMATION_SCHEMA\b|\bPG_CATALOG\b",
    re.IGNORECASE
)
AGGREGATE_PATTERN = re.compile(
    r"\b(?:COUNT|SUM|AVG|MIN|MAX)\s*\(|\bGROUP\s+BY\b",
    re.IGNORECASE
)

ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
DIGITS = re.compile(r"\d+")
WHITESPACE = re.compile(r"\s+")
# Sentence punctuation only: comparison operators stay in the key
PUNCTUATION = re.compile(r"[¿?¡!.]")


@dataclass(frozen=True)
class CacheEntry:
    """One cached query outcome. Owned by ResultCache."""
    sql: str
    results: list[dict[str, Any]]
    explanation: str
    created_at: float
    ttl_seconds: float
    language: str
    execution_time_ms: float
    tier: TTLTier

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl_seconds


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""
    hits: int
    misses: int
    total_entries: int
    memory_usage_bytes: int
    oldest_entry: Optional[float] = None
    newest_entry: Optional[float] = None

    @property
    def total_requests(self) -> int:
        """Total cache lookups (hits + misses)."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Cache hit rate (0.0-1.0)."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def to_dict(self) -> dict:
        """Convert stats to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "total_requests": self.total_requests,
            "hit_rate": self.hit_rate,
            "total_entries": self.total_entries,
            "memory_usage_bytes": self.memory_usage_bytes,
            "oldest_entry": self.oldest_entry,
            "newest_entry": self.newest_entry,
        }


class ResultCache:
    """Bounded TTL cache of successful query results.

    Attributes:
        max_size: Maximum number of entries
        cleanup_interval_seconds: Period of the expired-entry sweeper
            (0 disables the background thread; expiry still happens lazily)
    """

    def __init__(
        self,
        max_size: int = 1000,
        cleanup_interval_seconds: float = 300.0,
        enabled: bool = True,
        clock: Callable[[], float] = time.time
    ):
        if max_size < 1:
            raise ValueError("max_size must be a positive integer")
        self._max_size = max_size
        self._cleanup_interval = cleanup_interval_seconds
        self._enabled = enabled
        self._clock = clock

        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()

        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        if cleanup_interval_seconds > 0:
            self._sweeper = threading.Thread(
                target=self._sweep,
                name="result-cache-sweeper",
                daemon=True
            )
            self._sweeper.start()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def is_enabled(self) -> bool:
        """Check if caching is enabled."""
        return self._enabled

    def lookup(self, question: str, language: str, schema_fingerprint: str) -> Optional[CacheEntry]:
        """Return the cached entry, or None on miss.

        Expired entries count as misses and are removed.
        """
        if not self._enabled:
            return None

        key = self.generate_key(question, language, schema_fingerprint)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("cache_miss key=%s", key[:16])
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._misses += 1
                logger.debug("cache_expired key=%s tier=%s", key[:16], entry.tier.value)
                return None

            self._hits += 1
            logger.info("cache_hit key=%s tier=%s", key[:16], entry.tier.value)
            return self._copy(entry)

    def store(
        self,
        question: str,
        language: str,
        schema_fingerprint: str,
        sql: str,
        rows: list[dict[str, Any]],
        explanation: str,
        elapsed_ms: float
    ) -> bool:
        """Cache a successful result.

        Returns:
            True if stored, False when the cache is disabled
        """
        if not self._enabled:
            return False

        key = self.generate_key(question, language, schema_fingerprint)
        tier = self.select_tier(sql)
        entry = CacheEntry(
            sql=sql,
            results=copy.deepcopy(rows),
            explanation=explanation,
            created_at=self._clock(),
            ttl_seconds=TTL_SECONDS[tier],
            language=language,
            execution_time_ms=elapsed_ms,
            tier=tier
        )

        with self._lock:
            # Disabled while the entry was being built
            if not self._enabled:
                return False
            if key not in self._entries and len(self._entries) >= self._max_size:
                self._evict_oldest()
            self._entries[key] = entry

        logger.info("cache_store key=%s tier=%s ttl=%ds", key[:16], tier.value, entry.ttl_seconds)
        return True

    def invalidate_by_table(self, table_name: str) -> int:
        """Remove entries whose SQL mentions table_name (case-insensitive substring).

        Coarse on purpose: "order" also matches SQL touching "orders".

        Returns:
            Number of entries removed
        """
        needle = table_name.lower()
        with self._lock:
            keys = [key for key, entry in self._entries.items() if needle in entry.sql.lower()]
            for key in keys:
                del self._entries[key]

        logger.info("cache_invalidate table=%s removed=%d", table_name, len(keys))
        return len(keys)

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            keys = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in keys:
                del self._entries[key]

        if keys:
            logger.debug("cache_purge removed=%d", len(keys))
        return len(keys)

    def stats(self) -> CacheStats:
        """Current statistics. Memory usage is an estimate from serialized size."""
        with self._lock:
            entries = list(self._entries.values())
            hits, misses = self._hits, self._misses

        memory = sum(self._estimate_size(entry) for entry in entries)
        created = [entry.created_at for entry in entries]
        return CacheStats(
            hits=hits,
            misses=misses,
            total_entries=len(entries),
            memory_usage_bytes=memory,
            oldest_entry=min(created) if created else None,
            newest_entry=max(created) if created else None
        )

    def clear(self) -> None:
        """Remove all entries and reset statistics."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("cache_cleared")

    def set_enabled(self, enabled: bool) -> None:
        """Toggle caching at runtime. Disabling drops every entry."""
        with self._lock:
            self._enabled = enabled
            if not enabled:
                self._entries.clear()
        logger.info("cache_enabled=%s", enabled)

    def close(self) -> None:
        """Stop the background sweeper."""
        self._stop.set()
        if self._sweeper is not None and self._sweeper is not threading.current_thread():
            self._sweeper.join(timeout=1.0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_oldest(self) -> None:
        # min() keeps the first of equal timestamps, i.e. the earliest inserted
        oldest_key = min(self._entries, key=lambda k: self._entries[k].created_at)
        del self._entries[oldest_key]
        logger.info("cache_evict key=%s", oldest_key[:16])

    def _sweep(self) -> None:
        while not self._stop.wait(self._cleanup_interval):
            self.purge_expired()

    @staticmethod
    def _copy(entry: CacheEntry) -> CacheEntry:
        return CacheEntry(
            sql=entry.sql,
            results=copy.deepcopy(entry.results),
            explanation=entry.explanation,
            created_at=entry.created_at,
            ttl_seconds=entry.ttl_seconds,
            language=entry.language,
            execution_time_ms=entry.execution_time_ms,
            tier=entry.tier
        )

    @staticmethod
    def _estimate_size(entry: CacheEntry) -> int:
        serialized = json.dumps(
            {"sql": entry.sql, "results": entry.results, "explanation": entry.explanation},
            default=str
        )
        return len(serialized) * 2

    @staticmethod
    def normalize_question(question: str) -> str:
        """Canonical form of a question for key derivation.

        Dates are replaced before digits so a date becomes one token.
        """
        normalized = question.lower().strip()
        normalized = ISO_DATE.sub("DATE", normalized)
        normalized = PUNCTUATION.sub("", normalized)
        normalized = DIGITS.sub("NUM", normalized)
        normalized = WHITESPACE.sub(" ", normalized)
        return normalized.strip()

    @classmethod
    def generate_key(cls, question: str, language: str, schema_fingerprint: str) -> str:
        """Cache key: sha256(normalized question):language:fingerprint."""
        digest = hashlib.sha256(cls.normalize_question(question).encode("utf-8")).hexdigest()
        return f"{digest}:{language}:{schema_fingerprint}"

    @staticmethod
    def select_tier(sql: str) -> TTLTier:
        """TTL tier chosen from the shape of the generated SQL."""
        if METADATA_PATTERN.search(sql):
            return TTLTier.METADATA
        if AGGREGATE_PATTERN.search(sql):
            return TTLTier.AGGREGATE
        return TTLTier.DEFAULT

    @classmethod
    def select_ttl(cls, sql: str) -> int:
        """TTL in seconds for sql."""
        return TTL_SECONDS[cls.select_tier(sql)]
