"""Rolling in-memory record of executed queries, for debugging and analysis."""
import json
import threading
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .llm.base import LLMUsage


class QueryRecord(BaseModel):
    """One execution of query() or execute_sql()."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    question: Optional[str] = None
    sql: str
    confidence: Optional[float] = None
    success: bool
    elapsed_ms: float
    from_cache: bool = False
    token_usage: Optional[LLMUsage] = None
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)


@dataclass
class HistoryStats:
    total_queries: int = 0
    successful_queries: int = 0
    failed_queries: int = 0
    average_elapsed_ms: float = 0.0
    cache_hit_rate: float = 0.0
    total_tokens: int = 0

    def to_dict(self) -> dict:
        return {
            "total_queries": self.total_queries,
            "successful_queries": self.successful_queries,
            "failed_queries": self.failed_queries,
            "average_elapsed_ms": self.average_elapsed_ms,
            "cache_hit_rate": self.cache_hit_rate,
            "total_tokens": self.total_tokens,
        }


class QueryHistory:
    """Thread-safe bounded history; the oldest records drop off first."""

    def __init__(self, max_size: int = 100):
        if max_size < 1:
            raise ValueError("max_size must be a positive integer")
        self._records: deque[QueryRecord] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def add(self, record: QueryRecord) -> None:
        with self._lock:
            self._records.append(record)

    def records(self, limit: Optional[int] = None) -> list[QueryRecord]:
        """All records, or the last `limit` ones, oldest first."""
        with self._lock:
            items = list(self._records)
        if limit is not None and limit > 0:
            return items[-limit:]
        return items

    def last(self) -> Optional[QueryRecord]:
        with self._lock:
            return self._records[-1] if self._records else None

    def stats(self) -> HistoryStats:
        items = self.records()
        total = len(items)
        if total == 0:
            return HistoryStats()

        successful = sum(1 for r in items if r.success)
        cache_hits = sum(1 for r in items if r.from_cache)
        return HistoryStats(
            total_queries=total,
            successful_queries=successful,
            failed_queries=total - successful,
            average_elapsed_ms=round(sum(r.elapsed_ms for r in items) / total, 2),
            cache_hit_rate=round(cache_hits / total, 2),
            total_tokens=sum(r.token_usage.total_tokens for r in items if r.token_usage),
        )

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def export_json(self) -> str:
        """History and stats as a JSON document."""
        return json.dumps(
            {
                "exported_at": datetime.now(timezone.utc).isoformat(),
                "stats": self.stats().to_dict(),
                "queries": [r.model_dump(mode="json") for r in self.records()],
            },
            indent=2
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
