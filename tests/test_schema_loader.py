"""Tests for schema snapshot building, fingerprinting and rendering."""
import pytest

from conftest import FakeDatabase, SHOP_COLUMNS, SHOP_FOREIGN_KEYS, FakeClock
from reflective_sql.errors import ExecutionError, SchemaFetchError
from reflective_sql.i18n import Messages
from reflective_sql.schema_loader import (
    SchemaLoader,
    build_snapshot,
    describe_relationships,
    describe_schema,
)
from reflective_sql.schemas_translation import SchemaContext, TableContext


class TestBuildSnapshot:

    def test_tables_and_columns(self, shop_snapshot):
        assert shop_snapshot.table_names == {"products", "customers", "orders"}
        products = shop_snapshot.get_table("Products")
        assert [c.name for c in products.columns] == ["id", "name", "stock"]
        assert products.columns[0].is_primary_key is True
        assert products.columns[0].nullable is False

    def test_foreign_keys(self, shop_snapshot):
        orders = shop_snapshot.get_table("orders")
        assert {fk.referenced_table for fk in orders.foreign_keys} == {"customers", "products"}

    def test_column_failure_is_fatal(self):
        db = FakeDatabase(columns_error=ExecutionError("permission denied for schema public"))

        with pytest.raises(SchemaFetchError) as exc_info:
            build_snapshot(db)

        assert "permission denied" in exc_info.value.message
        assert exc_info.value.to_dict()["category"] == "schema"

    def test_foreign_key_failure_degrades(self):
        db = FakeDatabase(
            columns=SHOP_COLUMNS,
            foreign_keys_error=ExecutionError("information_schema unavailable")
        )

        snapshot = build_snapshot(db)

        assert snapshot.has_table("orders")
        assert snapshot.get_table("orders").foreign_keys == ()
        assert describe_relationships(snapshot) is None


class TestFingerprint:

    def test_stable_for_identical_schemas(self):
        first = build_snapshot(FakeDatabase(columns=SHOP_COLUMNS, foreign_keys=SHOP_FOREIGN_KEYS))
        second = build_snapshot(FakeDatabase(columns=SHOP_COLUMNS, foreign_keys=SHOP_FOREIGN_KEYS))
        assert first.fingerprint == second.fingerprint
        assert len(first.fingerprint) == 64

    def test_table_order_does_not_matter(self):
        first = build_snapshot(FakeDatabase(columns=SHOP_COLUMNS))
        second = build_snapshot(FakeDatabase(columns=SHOP_COLUMNS[3:] + SHOP_COLUMNS[:3]))
        assert first.fingerprint == second.fingerprint

    def test_changes_with_schema(self, products_snapshot, shop_snapshot):
        assert products_snapshot.fingerprint != shop_snapshot.fingerprint


class TestDescribe:

    def test_describe_schema(self, products_snapshot):
        text = describe_schema(products_snapshot, Messages("en"))

        assert "Table products" in text
        assert "  - id (integer, primary key, not null)" in text
        assert "  - stock (integer)" in text

    def test_business_descriptions_are_folded_in(self, products_snapshot):
        context = SchemaContext(tables={
            "products": TableContext(description="Items for sale", columns={"stock": "Units on hand"})
        })
        text = describe_schema(products_snapshot, Messages("es"), context)

        assert "Tabla products: Items for sale" in text
        assert "  - stock (integer): Units on hand" in text
        assert "clave primaria" in text

    def test_describe_relationships(self, shop_snapshot):
        assert describe_relationships(shop_snapshot) == (
            "orders.customer_id -> customers.id\n"
            "orders.product_id -> products.id"
        )


class TestSchemaLoader:

    def test_reuses_snapshot_within_ttl(self):
        db = FakeDatabase()
        clock = FakeClock()
        loader = SchemaLoader(db, ttl_seconds=300, clock=clock)

        first = loader.load()
        clock.advance(299)
        assert loader.load() is first
        assert db.metadata_calls == 1

        clock.advance(2)
        loader.load()
        assert db.metadata_calls == 2

    def test_zero_ttl_always_refetches(self):
        db = FakeDatabase()
        loader = SchemaLoader(db, ttl_seconds=0)
        loader.load()
        loader.load()
        assert db.metadata_calls == 2

    def test_invalidate(self):
        db = FakeDatabase()
        loader = SchemaLoader(db, ttl_seconds=300)
        loader.load()
        loader.invalidate()
        loader.load()
        assert db.metadata_calls == 2
