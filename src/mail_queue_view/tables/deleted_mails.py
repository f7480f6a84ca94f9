# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Deleted mails table: tombstones excluding mails from browse results."""

from __future__ import annotations

from ..sql import String, Table


class DeletedMailsTable(Table):
    """Deleted mails table, one partition per queue.

    Fields:
    - queue_name: Queue identifier (partition key)
    - mail_key: Tombstoned mail (clustering key)
    """

    name = "deleted_mails"
    partition_key = ("queue_name",)
    clustering_key = ("mail_key",)

    def configure(self) -> None:
        c = self.columns
        c.column("queue_name", String, nullable=False)
        c.column("mail_key", String, nullable=False)

    async def mark_as_deleted(self, queue_name: str, mail_key: str) -> None:
        """Write a tombstone. Writing it again has no effect."""
        await self.insert_if_absent({"queue_name": queue_name, "mail_key": mail_key})

    async def is_deleted(self, queue_name: str, mail_key: str) -> bool:
        return await self.exists({"queue_name": queue_name, "mail_key": mail_key})

    async def is_still_enqueued(self, queue_name: str, mail_key: str) -> bool:
        """True when no tombstone exists for the mail."""
        return not await self.is_deleted(queue_name, mail_key)


__all__ = ["DeletedMailsTable"]
