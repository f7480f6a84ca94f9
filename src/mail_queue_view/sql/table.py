# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Table base class with Columns-based schema (async version).

Tables are laid out like column families: rows are grouped in partitions
identified by ``partition_key`` and ordered inside a partition by
``clustering_key``. The primary key is the concatenation of both.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from .column import Columns

if TYPE_CHECKING:
    from .sqldb import SqlDb


class Table:
    """Base class for async table managers.

    Subclasses define columns via configure() hook and implement
    domain-specific operations.

    Attributes:
        name: Table name in database.
        partition_key: Columns identifying a partition.
        clustering_key: Columns ordering rows inside a partition.
        db: SqlDb instance reference.
        columns: Column definitions.
    """

    name: str
    partition_key: tuple[str, ...] = ()
    clustering_key: tuple[str, ...] = ()

    def __init__(self, db: SqlDb) -> None:
        self.db = db
        if not hasattr(self, "name") or not self.name:
            raise ValueError(f"{type(self).__name__} must define 'name'")
        if not self.partition_key:
            raise ValueError(f"{type(self).__name__} must define 'partition_key'")

        self.columns = Columns()
        self.configure()

    def configure(self) -> None:
        """Override to define columns. Called during __init__."""
        pass

    @property
    def primary_key(self) -> tuple[str, ...]:
        return self.partition_key + self.clustering_key

    # -------------------------------------------------------------------------
    # Schema
    # -------------------------------------------------------------------------

    def create_table_sql(self) -> str:
        """Generate CREATE TABLE IF NOT EXISTS statement."""
        col_defs = [col.to_sql(self.db.adapter.column_type) for col in self.columns.values()]
        col_defs.append(f"PRIMARY KEY ({', '.join(self.primary_key)})")
        return f"CREATE TABLE IF NOT EXISTS {self.name} (\n    " + ",\n    ".join(col_defs) + "\n)"

    async def create_schema(self) -> None:
        """Create table if not exists."""
        await self.db.adapter.execute(self.create_table_sql())

    # -------------------------------------------------------------------------
    # JSON Encoding/Decoding
    # -------------------------------------------------------------------------

    def _encode_json_fields(self, data: dict[str, Any]) -> dict[str, Any]:
        """Encode JSON fields for storage."""
        result = dict(data)
        for col_name in self.columns.json_columns():
            if col_name in result and result[col_name] is not None:
                result[col_name] = json.dumps(result[col_name])
        return result

    def _decode_json_fields(self, row: dict[str, Any]) -> dict[str, Any]:
        """Decode JSON fields from storage."""
        result = dict(row)
        for col_name in self.columns.json_columns():
            if col_name in result and result[col_name] is not None:
                result[col_name] = json.loads(result[col_name])
        return result

    # -------------------------------------------------------------------------
    # Partition-scoped operations
    # -------------------------------------------------------------------------

    def _where(self, where: dict[str, Any]) -> str:
        return " AND ".join(f"{k} = :{k}" for k in where)

    def _check_partition(self, where: dict[str, Any]) -> None:
        missing = [k for k in self.partition_key if k not in where]
        if missing:
            raise ValueError(f"{self.name}: query must bind the full partition key, missing {missing}")

    async def insert_if_absent(self, data: dict[str, Any]) -> bool:
        """Insert a row unless its primary key exists. Returns True if inserted."""
        encoded = self._encode_json_fields(data)
        rowcount = await self.db.adapter.insert_if_absent(self.name, encoded, self.primary_key)
        return rowcount > 0

    async def select_partition(
        self,
        where: dict[str, Any],
        columns: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Read rows of one partition in clustering order."""
        self._check_partition(where)
        cols_sql = ", ".join(columns) if columns else "*"
        query = f"SELECT {cols_sql} FROM {self.name} WHERE {self._where(where)}"
        if self.clustering_key:
            query += f" ORDER BY {', '.join(self.clustering_key)}"
        rows = await self.db.adapter.fetch_all(query, where)
        return [self._decode_json_fields(row) for row in rows]

    async def select_one(
        self,
        where: dict[str, Any],
        columns: list[str] | None = None,
    ) -> dict[str, Any] | None:
        """Read a single row inside one partition."""
        self._check_partition(where)
        cols_sql = ", ".join(columns) if columns else "*"
        query = f"SELECT {cols_sql} FROM {self.name} WHERE {self._where(where)} LIMIT 1"
        row = await self.db.adapter.fetch_one(query, where)
        return self._decode_json_fields(row) if row else None

    async def exists(self, where: dict[str, Any]) -> bool:
        """Check if a row exists inside one partition."""
        self._check_partition(where)
        row = await self.db.adapter.fetch_one(
            f"SELECT 1 AS found FROM {self.name} WHERE {self._where(where)} LIMIT 1", where
        )
        return row is not None

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute raw query, return affected row count."""
        return await self.db.adapter.execute(query, params)

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute raw query, return all rows."""
        rows = await self.db.adapter.fetch_all(query, params)
        return [self._decode_json_fields(row) for row in rows]


__all__ = ["Table"]
