# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite async adapter using aiosqlite."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import aiosqlite

from .base import DbAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence


class SqliteAdapter(DbAdapter):
    """SQLite async adapter. Opens connection per-operation for thread safety.

    A file path is required: every operation opens its own connection, so an
    in-memory database would not outlive a single statement.
    """

    def __init__(self, db_path: str, timeout: float = 5.0):
        """Initialize SQLite adapter.

        Args:
            db_path: Path to SQLite file.
            timeout: Seconds to wait on a locked database before failing.
        """
        self.db_path = db_path
        self.timeout = timeout

    async def connect(self) -> None:
        """SQLite connections are opened per-operation, this is a no-op."""
        pass

    async def close(self) -> None:
        """SQLite connections are closed per-operation, this is a no-op."""
        pass

    async def execute(self, query: str, params: dict[str, Any] | None = None) -> int:
        """Execute query, return affected row count."""
        async with aiosqlite.connect(self.db_path, timeout=self.timeout) as db:
            cursor = await db.execute(query, params or {})
            await db.commit()
            return cursor.rowcount

    async def fetch_one(
        self, query: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        """Execute query, return single row as dict or None."""
        async with aiosqlite.connect(self.db_path, timeout=self.timeout) as db:
            async with db.execute(query, params or {}) as cursor:
                row = await cursor.fetchone()
                if row is None:
                    return None
                cols = [c[0] for c in cursor.description]
                return dict(zip(cols, row, strict=True))

    async def fetch_all(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Execute query, return all rows as list of dicts."""
        async with aiosqlite.connect(self.db_path, timeout=self.timeout) as db:
            async with db.execute(query, params or {}) as cursor:
                rows = await cursor.fetchall()
                cols = [c[0] for c in cursor.description]
                return [dict(zip(cols, row, strict=True)) for row in rows]

    async def insert_if_absent(
        self,
        table: str,
        data: dict[str, Any],
        conflict_columns: Sequence[str],
    ) -> int:
        """Insert using SQLite ON CONFLICT DO NOTHING."""
        columns = list(data.keys())
        placeholders = ", ".join(f":{c}" for c in columns)
        col_list = ", ".join(columns)
        conflict_cols = ", ".join(conflict_columns)

        query = f"""
            INSERT INTO {table} ({col_list}) VALUES ({placeholders})
            ON CONFLICT ({conflict_cols}) DO NOTHING
        """
        return await self.execute(query, data)
