"""Tests for the in-memory result cache.

Validates:
1. Key normalization (case, whitespace, punctuation, dates, numbers)
2. Partitioning by language and schema fingerprint
3. TTL tiers chosen from the SQL shape, and lazy expiry
4. Capacity bound with oldest-entry eviction
5. Table-scoped invalidation
6. Stats, clear and the enable/disable toggle
"""
import threading

import pytest

from reflective_sql.cache import ResultCache, TTLTier, TTL_SECONDS

FINGERPRINT = "a" * 64
OTHER_FINGERPRINT = "b" * 64


def word(n: int) -> str:
    """Digit-free token, since digit runs collapse in the key."""
    return "".join(chr(ord("a") + int(d)) for d in str(n))


def make_cache(clock, **kwargs) -> ResultCache:
    kwargs.setdefault("cleanup_interval_seconds", 0)
    return ResultCache(clock=clock, **kwargs)


def store(cache, question, sql="SELECT name FROM products LIMIT 10", rows=None, fingerprint=FINGERPRINT):
    return cache.store(question, "en", fingerprint, sql, rows or [{"name": "widget"}], "One widget.", 12.0)


class TestNormalization:
    """Questions that differ only cosmetically share a key."""

    def test_case_and_whitespace(self):
        assert ResultCache.normalize_question("Show me all users") == \
            ResultCache.normalize_question("show me   all users")

    def test_terminal_punctuation(self):
        assert ResultCache.normalize_question("How many products are there?") == \
            ResultCache.normalize_question("how many products are there")

    def test_dates_collapse_to_one_placeholder(self):
        first = ResultCache.normalize_question("Show me sales for 2024-01-01")
        second = ResultCache.normalize_question("show me sales for 2024-06-30")
        assert first == second
        assert "DATE" in first

    def test_digit_runs_collapse(self):
        assert ResultCache.normalize_question("top 5 products") == \
            ResultCache.normalize_question("top 10 products")

    def test_different_questions_differ(self):
        assert ResultCache.normalize_question("show products") != \
            ResultCache.normalize_question("show orders")

    def test_comparison_operators_are_kept(self):
        assert ResultCache.normalize_question("orders with total > 100") != \
            ResultCache.normalize_question("orders with total < 100")
        assert ResultCache.generate_key("orders with total > 100", "en", FINGERPRINT) != \
            ResultCache.generate_key("orders with total = 100", "en", FINGERPRINT)

    def test_opposite_comparison_is_a_miss(self, clock):
        cache = make_cache(clock)
        store(cache, "orders with total > 100", sql="SELECT * FROM orders WHERE total > 100 LIMIT 50")

        assert cache.lookup("orders with total < 100", "en", FINGERPRINT) is None
        assert cache.lookup("Orders with total > 100?", "en", FINGERPRINT) is not None

    def test_key_includes_language_and_fingerprint(self):
        key = ResultCache.generate_key("q", "es", FINGERPRINT)
        assert key.endswith(f":es:{FINGERPRINT}")
        assert ResultCache.generate_key("q", "en", FINGERPRINT) != key


class TestLookupAndStore:

    def test_miss_then_hit(self, clock):
        cache = make_cache(clock)
        assert cache.lookup("show products", "en", FINGERPRINT) is None

        store(cache, "show products")
        entry = cache.lookup("Show   products!", "en", FINGERPRINT)

        assert entry is not None
        assert entry.sql == "SELECT name FROM products LIMIT 10"
        assert entry.results == [{"name": "widget"}]
        assert entry.explanation == "One widget."
        assert entry.language == "en"
        assert entry.execution_time_ms == 12.0

    def test_schema_fingerprint_partitions_entries(self, clock):
        cache = make_cache(clock)
        store(cache, "show products")

        assert cache.lookup("show products", "en", OTHER_FINGERPRINT) is None

    def test_language_partitions_entries(self, clock):
        cache = make_cache(clock)
        store(cache, "show products")

        assert cache.lookup("show products", "es", FINGERPRINT) is None

    def test_rows_are_not_aliased(self, clock):
        cache = make_cache(clock)
        rows = [{"name": "widget"}]
        store(cache, "show products", rows=rows)
        rows[0]["name"] = "changed"

        entry = cache.lookup("show products", "en", FINGERPRINT)
        entry.results[0]["name"] = "mutated by caller"

        assert cache.lookup("show products", "en", FINGERPRINT).results == [{"name": "widget"}]

    def test_restoring_same_key_does_not_evict(self, clock):
        cache = make_cache(clock, max_size=2)
        store(cache, "first")
        store(cache, "second")
        store(cache, "second", sql="SELECT id FROM products LIMIT 1")

        assert len(cache) == 2
        assert cache.lookup("first", "en", FINGERPRINT) is not None


class TestTTL:

    @pytest.mark.parametrize("sql, tier", [
        ("SHOW TABLES", TTLTier.METADATA),
        ("DESCRIBE products", TTLTier.METADATA),
        ("SELECT table_name FROM information_schema.tables", TTLTier.METADATA),
        ("SELECT COUNT(*) FROM products", TTLTier.AGGREGATE),
        ("SELECT name, SUM(stock) FROM products GROUP BY name", TTLTier.AGGREGATE),
        ("SELECT avg(stock) FROM products", TTLTier.AGGREGATE),
        ("SELECT name FROM products LIMIT 10", TTLTier.DEFAULT),
    ])
    def test_tier_selection(self, sql, tier):
        assert ResultCache.select_tier(sql) is tier

    def test_tier_ratio(self):
        assert TTL_SECONDS[TTLTier.METADATA] == 12 * TTL_SECONDS[TTLTier.DEFAULT]
        assert TTL_SECONDS[TTLTier.AGGREGATE] == 3 * TTL_SECONDS[TTLTier.DEFAULT]
        assert ResultCache.select_ttl("SELECT COUNT(*) FROM products") == 900

    def test_expired_entry_is_a_miss_and_removed(self, clock):
        cache = make_cache(clock)
        store(cache, "show products")
        assert len(cache) == 1

        clock.advance(TTL_SECONDS[TTLTier.DEFAULT] + 1)

        assert cache.lookup("show products", "en", FINGERPRINT) is None
        assert len(cache) == 0
        assert cache.stats().misses == 1

    def test_entry_valid_within_ttl(self, clock):
        cache = make_cache(clock)
        store(cache, "count", sql="SELECT COUNT(*) FROM products")

        clock.advance(TTL_SECONDS[TTLTier.DEFAULT] + 1)

        entry = cache.lookup("count", "en", FINGERPRINT)
        assert entry is not None
        assert entry.tier is TTLTier.AGGREGATE

    def test_purge_expired(self, clock):
        cache = make_cache(clock)
        store(cache, "plain")
        store(cache, "meta", sql="SHOW TABLES")

        clock.advance(TTL_SECONDS[TTLTier.DEFAULT] + 1)

        assert cache.purge_expired() == 1
        assert len(cache) == 1


class TestCapacity:

    def test_max_size_plus_one_evicts_oldest(self, clock):
        cache = make_cache(clock, max_size=3)
        for question in ["alpha", "beta", "gamma"]:
            store(cache, question)
            clock.advance(1)

        store(cache, "delta")

        assert len(cache) == 3
        assert cache.lookup("alpha", "en", FINGERPRINT) is None
        for question in ["beta", "gamma", "delta"]:
            assert cache.lookup(question, "en", FINGERPRINT) is not None

    def test_equal_timestamps_evict_first_inserted(self, clock):
        cache = make_cache(clock, max_size=2)
        store(cache, "alpha")
        store(cache, "beta")
        store(cache, "gamma")

        assert cache.lookup("alpha", "en", FINGERPRINT) is None
        assert cache.lookup("beta", "en", FINGERPRINT) is not None

    def test_concurrent_stores_respect_capacity(self):
        cache = ResultCache(max_size=8, cleanup_interval_seconds=0)
        errors = []

        def worker(prefix):
            try:
                for i in range(50):
                    store(cache, f"{prefix} {word(i)}")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(word(n),)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(cache) == 8
        assert cache.stats().total_entries == 8

    def test_invalid_max_size(self):
        with pytest.raises(ValueError):
            ResultCache(max_size=0, cleanup_interval_seconds=0)


class TestInvalidation:

    def test_invalidate_by_table(self, clock):
        cache = make_cache(clock)
        store(cache, "products", sql="SELECT name FROM products LIMIT 5")
        store(cache, "customers", sql="SELECT name FROM customers LIMIT 5")

        removed = cache.invalidate_by_table("PRODUCTS")

        assert removed == 1
        assert cache.lookup("products", "en", FINGERPRINT) is None
        assert cache.lookup("customers", "en", FINGERPRINT) is not None

    def test_invalidation_is_substring_based(self, clock):
        cache = make_cache(clock)
        store(cache, "orders", sql="SELECT id FROM orders LIMIT 5")

        assert cache.invalidate_by_table("order") == 1


class TestStatsAndToggle:

    def test_stats(self, clock):
        cache = make_cache(clock)
        store(cache, "first")
        clock.advance(5)
        store(cache, "second")

        cache.lookup("first", "en", FINGERPRINT)
        cache.lookup("unknown", "en", FINGERPRINT)

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
        assert stats.total_entries == 2
        assert stats.memory_usage_bytes > 0
        assert stats.newest_entry - stats.oldest_entry == 5

        payload = stats.to_dict()
        assert payload["total_requests"] == 2

    def test_empty_stats(self, clock):
        stats = make_cache(clock).stats()
        assert stats.hit_rate == 0.0
        assert stats.oldest_entry is None

    def test_clear_resets_entries_and_stats(self, clock):
        cache = make_cache(clock)
        store(cache, "first")
        cache.lookup("first", "en", FINGERPRINT)

        cache.clear()

        stats = cache.stats()
        assert stats.total_entries == 0
        assert stats.hits == 0
        assert stats.misses == 0

    def test_disable_clears_and_bypasses(self, clock):
        cache = make_cache(clock)
        store(cache, "first")

        cache.set_enabled(False)

        assert not cache.is_enabled
        assert len(cache) == 0
        assert store(cache, "first") is False
        assert cache.lookup("first", "en", FINGERPRINT) is None
        assert cache.stats().misses == 0

        cache.set_enabled(True)
        assert cache.lookup("first", "en", FINGERPRINT) is None

    def test_disable_during_store_leaves_no_entry(self):
        cache = None

        def disabling_clock():
            # Runs while store() builds the entry, before it takes the lock
            cache.set_enabled(False)
            return 1_000_000.0

        cache = ResultCache(cleanup_interval_seconds=0, clock=disabling_clock)

        assert store(cache, "how many products are there?") is False
        assert len(cache) == 0

        cache.set_enabled(True)
        assert cache.lookup("how many products are there?", "en", FINGERPRINT) is None

    def test_sweeper_thread_stops_on_close(self):
        cache = ResultCache(cleanup_interval_seconds=60)
        cache.close()
        assert not cache._sweeper.is_alive()
