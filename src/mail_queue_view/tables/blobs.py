# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Blobs table: immutable content keyed by its digest."""

from __future__ import annotations

from ..sql import Blob, String, Table


class BlobsTable(Table):
    """Blobs table.

    Fields:
    - blob_id: Content digest (partition key)
    - data: Raw bytes
    """

    name = "blobs"
    partition_key = ("blob_id",)

    def configure(self) -> None:
        c = self.columns
        c.column("blob_id", String, nullable=False)
        c.column("data", Blob, nullable=False)

    async def save(self, blob_id: str, data: bytes) -> None:
        await self.insert_if_absent({"blob_id": blob_id, "data": data})

    async def read(self, blob_id: str) -> bytes | None:
        row = await self.select_one({"blob_id": blob_id}, columns=["data"])
        if row is None:
            return None
        return bytes(row["data"])


__all__ = ["BlobsTable"]
