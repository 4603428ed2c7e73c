"""Pytest fixtures and configuration.

Provides an in-memory database double and schema fixtures so the whole
pipeline can be exercised without Postgres or a completion service.
"""
import copy
import sys
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from reflective_sql.config import Settings  # noqa: E402
from reflective_sql.schema_loader import build_snapshot  # noqa: E402


def column(table: str, name: str, data_type: str, pk: bool = False, nullable: bool = True) -> dict:
    return {
        "table_name": table,
        "column_name": name,
        "data_type": data_type,
        "is_primary_key": pk,
        "is_nullable": nullable,
    }


PRODUCTS_COLUMNS = [
    column("products", "id", "integer", pk=True, nullable=False),
    column("products", "name", "text"),
    column("products", "stock", "integer"),
]

SHOP_COLUMNS = PRODUCTS_COLUMNS + [
    column("customers", "id", "integer", pk=True, nullable=False),
    column("customers", "name", "text"),
    column("orders", "id", "integer", pk=True, nullable=False),
    column("orders", "customer_id", "integer"),
    column("orders", "product_id", "integer"),
    column("orders", "quantity", "integer"),
    column("orders", "created_at", "timestamp without time zone"),
]

SHOP_FOREIGN_KEYS = [
    {"table_name": "orders", "column_name": "customer_id",
     "referenced_table": "customers", "referenced_column": "id"},
    {"table_name": "orders", "column_name": "product_id",
     "referenced_table": "products", "referenced_column": "id"},
]


class FakeDatabase:
    """In-memory DatabaseClient.

    execute() consumes `results` in order (row lists are returned,
    exceptions raised). Once they run out it raises `fail_with` if set,
    otherwise returns `rows`.
    """

    def __init__(
        self,
        columns: Optional[list[dict]] = None,
        foreign_keys: Optional[list[dict]] = None,
        rows: Optional[list[dict[str, Any]]] = None,
        results: Optional[Sequence[Union[list, Exception]]] = None,
        fail_with: Optional[Exception] = None,
        columns_error: Optional[Exception] = None,
        foreign_keys_error: Optional[Exception] = None
    ):
        self.columns = columns if columns is not None else list(PRODUCTS_COLUMNS)
        self.foreign_keys = foreign_keys if foreign_keys is not None else []
        self.rows = rows if rows is not None else []
        self._results = list(results or [])
        self._fail_with = fail_with
        self._columns_error = columns_error
        self._foreign_keys_error = foreign_keys_error
        self.executed: list[str] = []
        self.metadata_calls = 0
        self.closed = False

    def execute(self, sql: str) -> list[dict[str, Any]]:
        self.executed.append(sql)
        if self._results:
            item = self._results.pop(0)
            if isinstance(item, Exception):
                raise item
            return copy.deepcopy(item)
        if self._fail_with is not None:
            raise self._fail_with
        return copy.deepcopy(self.rows)

    def fetch_columns(self) -> list[dict[str, Any]]:
        self.metadata_calls += 1
        if self._columns_error is not None:
            raise self._columns_error
        return copy.deepcopy(self.columns)

    def fetch_foreign_keys(self) -> list[dict[str, Any]]:
        if self._foreign_keys_error is not None:
            raise self._foreign_keys_error
        return copy.deepcopy(self.foreign_keys)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def products_db() -> FakeDatabase:
    """products(id, name, stock) answering every query with one count row."""
    return FakeDatabase(rows=[{"count": 42}])


@pytest.fixture
def products_snapshot():
    return build_snapshot(FakeDatabase())


@pytest.fixture
def shop_snapshot():
    return build_snapshot(FakeDatabase(columns=SHOP_COLUMNS, foreign_keys=SHOP_FOREIGN_KEYS))


@pytest.fixture
def settings() -> Settings:
    """Settings without the background cache sweeper."""
    return Settings(cache_cleanup_interval_seconds=0)


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
