"""Tests for the rolling query history."""
import json

import pytest

from reflective_sql.llm.base import LLMUsage
from reflective_sql.query_history import QueryHistory, QueryRecord


def record(sql="SELECT 1", success=True, elapsed_ms=10.0, from_cache=False, tokens=None, **kwargs):
    usage = LLMUsage(tokens, 0, tokens, 0.0) if tokens else None
    return QueryRecord(
        sql=sql, success=success, elapsed_ms=elapsed_ms,
        from_cache=from_cache, token_usage=usage, **kwargs
    )


def test_oldest_records_drop_off():
    history = QueryHistory(max_size=3)
    for i in range(5):
        history.add(record(sql=f"SELECT {i}"))

    assert len(history) == 3
    assert [r.sql for r in history.records()] == ["SELECT 2", "SELECT 3", "SELECT 4"]
    assert history.last().sql == "SELECT 4"


def test_records_limit():
    history = QueryHistory()
    for i in range(4):
        history.add(record(sql=f"SELECT {i}"))

    assert [r.sql for r in history.records(limit=2)] == ["SELECT 2", "SELECT 3"]


def test_stats():
    history = QueryHistory()
    history.add(record(elapsed_ms=10.0, tokens=300))
    history.add(record(elapsed_ms=20.0, from_cache=True))
    history.add(record(elapsed_ms=30.0, success=False, error="statement timeout", tokens=150))
    history.add(record(elapsed_ms=40.0))

    stats = history.stats()

    assert stats.total_queries == 4
    assert stats.successful_queries == 3
    assert stats.failed_queries == 1
    assert stats.average_elapsed_ms == 25.0
    assert stats.cache_hit_rate == 0.25
    assert stats.total_tokens == 450


def test_empty_stats():
    history = QueryHistory()
    assert history.stats().total_queries == 0
    assert history.last() is None


def test_export_json():
    history = QueryHistory()
    history.add(record(question="how many products are there?", confidence=0.9, tokens=150))

    exported = json.loads(history.export_json())

    assert exported["stats"]["total_queries"] == 1
    assert exported["queries"][0]["question"] == "how many products are there?"
    assert exported["queries"][0]["token_usage"]["total_tokens"] == 150
    assert "exported_at" in exported


def test_clear():
    history = QueryHistory()
    history.add(record())
    history.clear()
    assert len(history) == 0


def test_records_are_immutable():
    item = record()
    with pytest.raises(Exception):
        item.sql = "DROP TABLE products"


def test_invalid_size():
    with pytest.raises(ValueError):
        QueryHistory(max_size=0)
