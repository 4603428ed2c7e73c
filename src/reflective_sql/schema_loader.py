"""Schema snapshot building and rendering.

build_snapshot turns the database client's metadata listings into an
immutable SchemaSnapshot. Column listing failures are fatal
(SchemaFetchError); foreign-key listing failures only mean that no
relationships are known.

SchemaLoader reuses a snapshot for ttl_seconds so a burst of questions
does not hit information_schema every time.
"""
import threading
import time
from collections import defaultdict
from typing import Callable, Optional

from .db import DatabaseClient
from .errors import ExecutionError, SchemaFetchError
from .i18n import Messages
from .logging import logger
from .schemas_snapshot import ColumnInfo, ForeignKeyInfo, SchemaSnapshot, TableInfo
from .schemas_translation import SchemaContext


def build_snapshot(client: DatabaseClient) -> SchemaSnapshot:
    """Fetch metadata and build a snapshot.

    Raises:
        SchemaFetchError: If the column listing fails
    """
    try:
        column_rows = client.fetch_columns()
    except ExecutionError as e:
        raise SchemaFetchError(
            f"Failed to fetch database schema: {e.message}",
            details={"cause": e.to_dict()}
        )

    columns: dict[str, list[ColumnInfo]] = defaultdict(list)
    for row in column_rows:
        columns[row["table_name"]].append(ColumnInfo(
            name=row["column_name"],
            type=row["data_type"],
            is_primary_key=bool(row.get("is_primary_key", False)),
            nullable=bool(row.get("is_nullable", True)),
        ))

    foreign_keys: dict[str, list[ForeignKeyInfo]] = defaultdict(list)
    try:
        fk_rows = client.fetch_foreign_keys()
    except ExecutionError as e:
        logger.warning("schema_foreign_keys_unavailable error=%s", e.message)
        fk_rows = []

    for row in fk_rows:
        foreign_keys[row["table_name"]].append(ForeignKeyInfo(
            column=row["column_name"],
            referenced_table=row["referenced_table"],
            referenced_column=row["referenced_column"],
        ))

    snapshot = SchemaSnapshot(tables={
        table: TableInfo(
            columns=tuple(table_columns),
            foreign_keys=tuple(foreign_keys.get(table, ())),
        )
        for table, table_columns in columns.items()
    })
    logger.info(
        "schema_fetched tables=%d foreign_keys=%d",
        len(snapshot.tables), sum(len(v) for v in foreign_keys.values())
    )
    return snapshot


def describe_schema(
    snapshot: SchemaSnapshot,
    messages: Messages,
    context: Optional[SchemaContext] = None
) -> str:
    """Render tables and columns as prompt text.

    Table and column descriptions from the business context are appended
    where they exist.
    """
    table_label = messages.get("sections", "table")
    primary_key = messages.get("sections", "primary_key")
    not_null = messages.get("sections", "not_null")
    table_contexts = context.tables if context else {}

    blocks = []
    for table_name in sorted(snapshot.tables):
        info = snapshot.tables[table_name]
        table_context = table_contexts.get(table_name)

        header = f"{table_label} {table_name}"
        if table_context and table_context.description:
            header += f": {table_context.description}"
        lines = [header]

        for column in info.columns:
            flags = [column.type]
            if column.is_primary_key:
                flags.append(primary_key)
            if not column.nullable:
                flags.append(not_null)
            line = f"  - {column.name} ({', '.join(flags)})"
            if table_context and column.name in table_context.columns:
                line += f": {table_context.columns[column.name]}"
            lines.append(line)

        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def describe_relationships(snapshot: SchemaSnapshot) -> Optional[str]:
    """Foreign keys as 'table.column -> table.column' lines, None if there are none."""
    lines = [
        f"{table_name}.{fk.column} -> {fk.referenced_table}.{fk.referenced_column}"
        for table_name in sorted(snapshot.tables)
        for fk in snapshot.tables[table_name].foreign_keys
    ]
    return "\n".join(lines) or None


class SchemaLoader:
    """Caches the snapshot for a TTL window.

    Example:
        >>> loader = SchemaLoader(client, ttl_seconds=300)
        >>> snapshot = loader.load()     # fetches
        >>> snapshot is loader.load()    # reused within 5 minutes
        True
    """

    def __init__(
        self,
        client: DatabaseClient,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self._client = client
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[SchemaSnapshot] = None
        self._loaded_at = 0.0
        self._lock = threading.Lock()

    def load(self) -> SchemaSnapshot:
        """Return a snapshot, refetching when the TTL window has passed.

        Raises:
            SchemaFetchError: If a refetch is needed and fails
        """
        with self._lock:
            now = self._clock()
            if self._snapshot is not None and now - self._loaded_at < self._ttl_seconds:
                return self._snapshot

            self._snapshot = build_snapshot(self._client)
            self._loaded_at = now
            return self._snapshot

    def invalidate(self) -> None:
        """Force the next load() to refetch."""
        with self._lock:
            self._snapshot = None
