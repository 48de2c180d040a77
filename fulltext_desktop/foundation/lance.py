"""Low-level helpers for connecting to Lance tables."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Iterable, Sequence

import lancedb
import pyarrow as pa

LanceTable = Any

logger = logging.getLogger(__name__)

_IN_CHUNK = 500


def _connect(root: Path | str):
    path = Path(root).expanduser().resolve()
    path.mkdir(parents=True, exist_ok=True)
    # Always check for newer versions so readers see commits made by other processes.
    return lancedb.connect(str(path), read_consistency_interval=timedelta(0))


def quote(value: str) -> str:
    """Return ``value`` as a single-quoted SQL literal."""

    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def in_clauses(column: str, values: Iterable[str]) -> list[str]:
    """Return ``column IN (...)`` predicates covering ``values`` in bounded chunks."""

    pending = list(dict.fromkeys(values))
    return [
        f"{column} IN ({', '.join(quote(value) for value in pending[start : start + _IN_CHUNK])})"
        for start in range(0, len(pending), _IN_CHUNK)
    ]


def open_or_create_table(root: Path | str, table_name: str, schema: pa.Schema) -> LanceTable:
    """Return a Lance table, creating it (or upgrading its columns) if needed."""

    db = _connect(root)
    try:
        table = db.open_table(table_name)
    except (FileNotFoundError, ValueError):
        return db.create_table(table_name, schema=schema)
    if list(table.schema.names) != list(schema.names):
        logger.warning("Upgrading columns of table %s; re-index to refresh stored terms", table_name)
        rows = table.to_arrow().to_pylist()
        table = db.create_table(table_name, schema=schema, mode="overwrite")
        add_rows(table, schema, rows)
    return table


def to_arrow_rows(schema: pa.Schema, rows: Sequence[dict[str, Any]]) -> pa.Table:
    names = schema.names
    return pa.Table.from_pylist([{name: row.get(name) for name in names} for row in rows], schema=schema)


def add_rows(table: LanceTable, schema: pa.Schema, rows: Sequence[dict[str, Any]]) -> None:
    """Append ``rows``; keys missing from a row are stored as nulls."""

    if rows:
        table.add(to_arrow_rows(schema, rows))


def upsert_rows(table: LanceTable, schema: pa.Schema, key: str, rows: Sequence[dict[str, Any]]) -> None:
    """Replace whole rows matching on ``key`` and insert the rest in one commit."""

    if not rows:
        return
    (
        table.merge_insert(key)
        .when_matched_update_all()
        .when_not_matched_insert_all()
        .execute(to_arrow_rows(schema, rows))
    )


def insert_missing(table: LanceTable, schema: pa.Schema, key: str, rows: Sequence[dict[str, Any]]) -> None:
    """Insert rows whose ``key`` is not stored yet; existing rows are left alone."""

    if not rows:
        return
    table.merge_insert(key).when_not_matched_insert_all().execute(to_arrow_rows(schema, rows))


def replace_partition(
    table: LanceTable,
    schema: pa.Schema,
    on: Sequence[str],
    partition: str,
    rows: Sequence[dict[str, Any]],
) -> None:
    """Make the rows matching the predicate ``partition`` exactly ``rows`` in one commit.

    Stored rows of the partition that are absent from ``rows`` are deleted,
    matching rows are updated and new rows inserted.
    """

    if not rows:
        table.delete(partition)
        return
    (
        table.merge_insert(list(on))
        .when_matched_update_all()
        .when_not_matched_insert_all()
        .when_not_matched_by_source_delete(partition)
        .execute(to_arrow_rows(schema, rows))
    )


def delete_where(table: LanceTable, where: str) -> None:
    """Delete every row matching the SQL predicate ``where``."""

    table.delete(where)


def delete_values(table: LanceTable, column: str, values: Iterable[str]) -> None:
    """Delete rows whose ``column`` equals any of ``values``."""

    for clause in in_clauses(column, values):
        table.delete(clause)


def scan(
    table: LanceTable,
    *,
    columns: Sequence[str] | None = None,
    where: str | None = None,
) -> pa.Table:
    """Return the rows matching ``where`` restricted to ``columns``."""

    query = table.search()
    if where:
        query = query.where(where)
    if columns:
        query = query.select(list(columns))
    return query.limit(None).to_arrow()


def column_values(table: LanceTable, column: str) -> list[str]:
    """Return the non-null values stored in ``column``."""

    result = scan(table, columns=[column], where=f"{column} IS NOT NULL")
    if not result.num_rows:
        return []
    return [value for value in result.column(column).to_pylist() if value is not None]


def ensure_scalar_index(table: LanceTable, column: str) -> None:
    """Create a scalar index on ``column`` once the table holds data."""

    if not table.count_rows():
        return
    for index in table.list_indices():
        if column in (getattr(index, "columns", None) or ()):
            return
    logger.debug("Creating scalar index on %s", column)
    table.create_scalar_index(column)


def optimize_table(table: LanceTable, *, cleanup_older_than: timedelta) -> None:
    """Compact fragments, refresh indices and drop versions older than ``cleanup_older_than``."""

    table.optimize(cleanup_older_than=cleanup_older_than)
