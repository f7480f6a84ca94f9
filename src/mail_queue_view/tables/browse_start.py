# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Browse start table: earliest slice a browse of each queue must scan."""

from __future__ import annotations

from datetime import datetime, timezone

from ..slicing import epoch_seconds
from ..sql import BigInteger, String, Table


class BrowseStartTable(Table):
    """Browse start table, one row per initialized queue.

    Fields:
    - queue_name: Queue identifier (partition key)
    - browse_start: Epoch seconds of the first slice to scan

    The value only ever moves forward.
    """

    name = "browse_start"
    partition_key = ("queue_name",)

    def configure(self) -> None:
        c = self.columns
        c.column("queue_name", String, nullable=False)
        c.column("browse_start", BigInteger, nullable=False)

    async def find_browse_start(self, queue_name: str) -> datetime | None:
        """Return the browse start of a queue, None if it was never initialized."""
        row = await self.select_one({"queue_name": queue_name}, columns=["browse_start"])
        if row is None:
            return None
        return datetime.fromtimestamp(int(row["browse_start"]), tz=timezone.utc)

    async def insert_initial_browse_start(self, queue_name: str, instant: datetime) -> bool:
        """Write the browse start unless one exists. Returns True if written."""
        return await self.insert_if_absent(
            {"queue_name": queue_name, "browse_start": epoch_seconds(instant)}
        )

    async def update_browse_start(self, queue_name: str, instant: datetime) -> bool:
        """Move the browse start forward. Earlier values are ignored.

        Returns:
            True if the stored value changed.
        """
        rowcount = await self.execute(
            """
            UPDATE browse_start SET browse_start = :browse_start
            WHERE queue_name = :queue_name AND browse_start < :browse_start
            """,
            {"queue_name": queue_name, "browse_start": epoch_seconds(instant)},
        )
        return rowcount > 0

    async def list_queues(self) -> list[str]:
        """Names of every initialized queue."""
        rows = await self.fetch_all("SELECT queue_name FROM browse_start ORDER BY queue_name")
        return [row["queue_name"] for row in rows]


__all__ = ["BrowseStartTable"]
