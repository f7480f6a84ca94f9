# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Enqueued mails table: append-only index of every mail ever enqueued."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from ..models import DEFAULT_STATE, EnqueuedMail, Mail, MailReference, MimeMessagePartsId
from ..slicing import BucketedSlice, Slice
from ..sql import BigInteger, Integer, Json, String, Table

REFERENCE_COLUMNS = [
    "queue_name", "time_range_start", "bucket_id", "enqueued_time", "mail_key", "sender", "recipients",
]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_millis(instant: datetime) -> int:
    """Exact epoch milliseconds (integer arithmetic, no float rounding)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return (instant - EPOCH) // timedelta(milliseconds=1)


def from_millis(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=int(value))


class EnqueuedMailsTable(Table):
    """Enqueued mails table, one partition per (queue, slice, bucket).

    Fields:
    - queue_name, time_range_start, bucket_id: partition key
    - enqueued_time (epoch ms), mail_key: clustering key
    - header_blob_id, body_blob_id: content pointer in the blob store
    - envelope: sender, recipients, state, error_message, remote_host,
      remote_addr, last_updated, attributes, per_recipient_headers

    Rows are never updated. Removal is left to an external retention job.
    """

    name = "enqueued_mails"
    partition_key = ("queue_name", "time_range_start", "bucket_id")
    clustering_key = ("enqueued_time", "mail_key")

    def configure(self) -> None:
        c = self.columns
        c.column("queue_name", String, nullable=False)
        c.column("time_range_start", BigInteger, nullable=False)
        c.column("bucket_id", Integer, nullable=False)
        c.column("enqueued_time", BigInteger, nullable=False)
        c.column("mail_key", String, nullable=False)
        c.column("header_blob_id", String, nullable=False)
        c.column("body_blob_id", String, nullable=False)
        c.column("state", String)
        c.column("sender", String)
        c.column("recipients", Json)
        c.column("error_message", String)
        c.column("remote_host", String)
        c.column("remote_addr", String)
        c.column("last_updated", BigInteger)
        c.column("attributes", Json)
        c.column("per_recipient_headers", Json)

    async def insert(self, enqueued: EnqueuedMail) -> None:
        """Write the index row of an enqueued mail. An existing row is kept as is."""
        mail = enqueued.mail
        await self.insert_if_absent(
            {
                "queue_name": enqueued.queue_name,
                "time_range_start": enqueued.slice.start_epoch,
                "bucket_id": enqueued.bucket_id,
                "enqueued_time": to_millis(enqueued.enqueued_time),
                "mail_key": enqueued.mail_key,
                "header_blob_id": enqueued.parts_id.header_blob_id,
                "body_blob_id": enqueued.parts_id.body_blob_id,
                "state": mail.state,
                "sender": mail.sender,
                "recipients": list(mail.recipients),
                "error_message": mail.error_message,
                "remote_host": mail.remote_host,
                "remote_addr": mail.remote_addr,
                "last_updated": to_millis(mail.last_updated),
                "attributes": mail.attributes,
                "per_recipient_headers": mail.per_recipient_headers,
            }
        )

    async def select_enqueued_mails(
        self, queue_name: str, bucketed_slice: BucketedSlice
    ) -> list[MailReference]:
        """Scan one partition, in enqueue-time order."""
        rows = await self.select_partition(
            self._partition(queue_name, bucketed_slice), columns=REFERENCE_COLUMNS
        )
        return [self._to_reference(row) for row in rows]

    async def find(self, reference: MailReference) -> EnqueuedMail | None:
        """Resolve the full record behind a reference, None if it is gone."""
        where = self._partition(reference.queue_name, reference.bucketed_slice)
        where["enqueued_time"] = to_millis(reference.enqueued_time)
        where["mail_key"] = reference.mail_key
        row = await self.select_one(where)
        if row is None:
            return None
        return self._to_enqueued_mail(row)

    def _partition(self, queue_name: str, bucketed_slice: BucketedSlice) -> dict[str, Any]:
        return {
            "queue_name": queue_name,
            "time_range_start": bucketed_slice.slice.start_epoch,
            "bucket_id": bucketed_slice.bucket_id,
        }

    def _to_reference(self, row: dict[str, Any]) -> MailReference:
        return MailReference(
            queue_name=row["queue_name"],
            bucketed_slice=BucketedSlice(Slice.from_epoch(row["time_range_start"]), int(row["bucket_id"])),
            enqueued_time=from_millis(row["enqueued_time"]),
            mail_key=row["mail_key"],
            sender=row.get("sender"),
            recipients=tuple(row.get("recipients") or ()),
        )

    def _to_enqueued_mail(self, row: dict[str, Any]) -> EnqueuedMail:
        mail = Mail(
            name=row["mail_key"],
            sender=row.get("sender"),
            recipients=list(row.get("recipients") or []),
            state=row.get("state") or DEFAULT_STATE,
            error_message=row.get("error_message"),
            remote_host=row.get("remote_host") or "localhost",
            remote_addr=row.get("remote_addr") or "127.0.0.1",
            last_updated=from_millis(row.get("last_updated") or row["enqueued_time"]),
            attributes=row.get("attributes") or {},
            per_recipient_headers=row.get("per_recipient_headers") or {},
        )
        return EnqueuedMail(
            mail=mail,
            queue_name=row["queue_name"],
            slice=Slice.from_epoch(row["time_range_start"]),
            bucket_id=int(row["bucket_id"]),
            enqueued_time=from_millis(row["enqueued_time"]),
            parts_id=MimeMessagePartsId(row["header_blob_id"], row["body_blob_id"]),
        )


__all__ = ["EnqueuedMailsTable", "from_millis", "to_millis"]
