"""Pydantic schemas for the database schema snapshot.

A snapshot is built once per query cycle from metadata queries and is
immutable afterwards. Its fingerprint partitions the result cache.
"""
import hashlib
import json
from typing import Any

from pydantic import BaseModel, Field, ConfigDict


class ColumnInfo(BaseModel):
    """One column of a table."""
    name: str = Field(..., min_length=1, examples=["id"])
    type: str = Field(..., description="Database type name", examples=["integer"])
    is_primary_key: bool = False
    nullable: bool = True

    model_config = ConfigDict(frozen=True)


class ForeignKeyInfo(BaseModel):
    """A foreign-key edge from a column of this table to another table."""
    column: str
    referenced_table: str
    referenced_column: str

    model_config = ConfigDict(frozen=True)


class TableInfo(BaseModel):
    """Columns and outgoing foreign keys of one table."""
    columns: tuple[ColumnInfo, ...] = ()
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()

    model_config = ConfigDict(frozen=True)

    @property
    def column_names(self) -> set[str]:
        """Lowercased column names, for case-insensitive lookups."""
        return {c.name.lower() for c in self.columns}


class SchemaSnapshot(BaseModel):
    """Normalized description of reachable tables.

    Example:
        >>> snapshot = SchemaSnapshot(tables={
        ...     "products": TableInfo(columns=(
        ...         ColumnInfo(name="id", type="integer", is_primary_key=True, nullable=False),
        ...         ColumnInfo(name="name", type="text"),
        ...     ))
        ... })
        >>> snapshot.has_table("PRODUCTS")
        True
        >>> len(snapshot.fingerprint)
        64
    """
    tables: dict[str, TableInfo] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @property
    def table_names(self) -> set[str]:
        """Lowercased table names."""
        return {name.lower() for name in self.tables}

    def has_table(self, name: str) -> bool:
        return name.lower() in self.table_names

    def get_table(self, name: str) -> TableInfo | None:
        """Case-insensitive table lookup."""
        lowered = name.lower()
        for table_name, info in self.tables.items():
            if table_name.lower() == lowered:
                return info
        return None

    @property
    def fingerprint(self) -> str:
        """Deterministic SHA256 of the serialized snapshot.

        Tables are serialized with sorted keys so the hash does not depend
        on metadata query ordering or on the process (no use of hash()).
        """
        return hash_data(self.model_dump(mode="json"))


def hash_data(data: Any) -> str:
    """SHA256 hex digest of JSON-serializable data with sorted keys."""
    json_str = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()
