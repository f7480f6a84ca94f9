# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Browse path: ordered, tombstone-filtered listing of a queue.

A browse scans every partition ``(queue, slice, bucket)`` from the queue's
browse start up to the slice containing "now". Partitions are read
concurrently, each bounded by a timeout; the mails of one slice are merged by
enqueue time (ties broken by mail key) and slices are concatenated in order.

Failing to read any partition fails the whole browse with
``PartitionReadError``: a truncated listing is never returned. Failing to
load a single mail is reported on that item only.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import TYPE_CHECKING

from .config_loader import ViewConfig
from .errors import MailLoadError, PartitionReadError
from .logger import get_logger
from .models import MailReference, QueueItemView
from .slicing import BucketedSlice, Slice, all_slices_till, utc_now

if TYPE_CHECKING:
    from .mail_loader import MailLoader
    from .tables import BrowseStartTable, DeletedMailsTable, EnqueuedMailsTable

logger = get_logger("QueueBrowser")


def _sort_key(reference: MailReference) -> tuple[datetime, str]:
    return reference.enqueued_time, reference.mail_key


class MailQueueBrowser:
    """Lists the pending mails of any queue, oldest first."""

    def __init__(
        self,
        browse_start: BrowseStartTable,
        enqueued_mails: EnqueuedMailsTable,
        deleted_mails: DeletedMailsTable,
        loader: MailLoader,
        config: ViewConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.browse_start = browse_start
        self.enqueued_mails = enqueued_mails
        self.deleted_mails = deleted_mails
        self.loader = loader
        self.config = config
        self.clock = clock

    async def browse(self, queue_name: str) -> AsyncIterator[QueueItemView]:
        """Return a one-shot iterator over the pending mails of a queue.

        Every partition is read before this coroutine returns, so a
        ``PartitionReadError`` is raised here and never while iterating.
        Mails are loaded lazily as the iterator is consumed.
        """
        references = await self.browse_references(queue_name)
        return self._materialise(references)

    async def browse_references(self, queue_name: str) -> list[MailReference]:
        """Ordered references of every pending mail, without loading content.

        Raises:
            PartitionReadError: If the browse start or any partition could not be read.
        """
        try:
            browse_start = await self.browse_start.find_browse_start(queue_name)
        except Exception as exc:
            raise PartitionReadError(queue_name, None, None, f"browse start read failed: {exc}") from exc

        if browse_start is None:
            logger.debug(f"Queue '{queue_name}' was never initialized, nothing to browse")
            return []

        window = self.config.slice_window
        slices = list(all_slices_till(Slice.of(browse_start, window), self.clock(), window))
        bucket_count = self.config.bucket_count
        semaphore = asyncio.Semaphore(self.config.read_concurrency)

        tasks = [
            asyncio.ensure_future(self._read_partition(queue_name, BucketedSlice(s, b), semaphore))
            for s in slices
            for b in range(bucket_count)
        ]
        try:
            partitions = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        references: list[MailReference] = []
        for i in range(len(slices)):
            merged = [ref for part in partitions[i * bucket_count:(i + 1) * bucket_count] for ref in part]
            merged.sort(key=_sort_key)
            references.extend(merged)

        logger.debug(
            f"Browsed queue '{queue_name}': {len(slices)} slices x {bucket_count} buckets, "
            f"{len(references)} pending mails"
        )
        return references

    async def _read_partition(
        self, queue_name: str, bucketed_slice: BucketedSlice, semaphore: asyncio.Semaphore
    ) -> list[MailReference]:
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    self._scan(queue_name, bucketed_slice), self.config.read_timeout_seconds
                )
            except asyncio.TimeoutError as exc:
                raise PartitionReadError(
                    queue_name,
                    bucketed_slice.slice,
                    bucketed_slice.bucket_id,
                    f"timed out after {self.config.read_timeout_seconds}s",
                ) from exc
            except Exception as exc:
                raise PartitionReadError(
                    queue_name, bucketed_slice.slice, bucketed_slice.bucket_id, str(exc)
                ) from exc

    async def _scan(self, queue_name: str, bucketed_slice: BucketedSlice) -> list[MailReference]:
        """Rows of one partition that carry no tombstone, in clustering order."""
        references = await self.enqueued_mails.select_enqueued_mails(queue_name, bucketed_slice)
        pending = []
        for reference in references:
            if await self.deleted_mails.is_still_enqueued(queue_name, reference.mail_key):
                pending.append(reference)
        return pending

    async def _materialise(self, references: list[MailReference]) -> AsyncIterator[QueueItemView]:
        for reference in references:
            try:
                mail = await self.loader.load(reference)
            except MailLoadError as exc:
                logger.warning(str(exc))
                yield QueueItemView(reference, error=exc)
                continue
            if mail is None:
                continue
            yield QueueItemView(reference, mail=mail)


__all__ = ["MailQueueBrowser"]
