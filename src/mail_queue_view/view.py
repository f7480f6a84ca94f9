# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Per-queue facade over the write path, the browser and the tombstones.

Example:
    factory = MailQueueViewFactory(db, SqlBlobStore(db.blobs), config)
    view = await factory.create("spool")

    await view.store_mail(mail)
    async for item in await view.browse():
        print(item.mail_key)

    removed = await view.delete(DeleteCondition(sender="bounce@example.com"))
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import TYPE_CHECKING

from .blob_store import MimeMessageStore
from .browser import MailQueueBrowser
from .config_loader import ViewConfig
from .errors import PartitionReadError, TombstoneWriteError
from .logger import get_logger
from .mail_loader import MailLoader
from .mail_store import MailStore
from .models import DeleteCondition, EnqueuedMail, Mail, MailReference, QueueItemView
from .prometheus import QueueViewMetrics
from .slicing import utc_now

if TYPE_CHECKING:
    from .blob_store import BlobStore
    from .tables import DeletedMailsTable
    from .view_db import MailQueueViewDb

logger = get_logger("MailQueueView")


class MailQueueView:
    """Browsable view of one broker queue.

    Browsing never consumes anything: the broker keeps delivering the mails,
    and consumers report consumption through ``delete_mail``.
    """

    def __init__(
        self,
        queue_name: str,
        store: MailStore,
        browser: MailQueueBrowser,
        deleted_mails: DeletedMailsTable,
        clock: Callable[[], datetime] = utc_now,
        metrics: QueueViewMetrics | None = None,
    ):
        if not queue_name:
            raise ValueError("Queue name is required")
        self.queue_name = queue_name
        self.store = store
        self.browser = browser
        self.deleted_mails = deleted_mails
        self.clock = clock
        self.metrics = metrics or QueueViewMetrics()

    async def initialize(self) -> None:
        """Snapshot the browse start of the queue. Later calls keep the first value."""
        await self.store.initialize_browse_start(self.queue_name)

    async def store_mail(self, mail: Mail, enqueued_time: datetime | None = None) -> EnqueuedMail:
        """Index a mail handed over to the broker. ``enqueued_time`` defaults to now."""
        enqueued = await self.store.store_mail(mail, self.queue_name, enqueued_time or self.clock())
        self.metrics.inc_enqueued(self.queue_name)
        return enqueued

    async def delete_mail(self, mail_key: str) -> None:
        """Tombstone a mail, typically on consumer acknowledgment.

        Raises:
            TombstoneWriteError: If the tombstone could not be written.
        """
        await self._tombstone(mail_key)
        self.metrics.inc_deleted(self.queue_name)

    async def browse(self) -> AsyncIterator[QueueItemView]:
        """Pending mails oldest first, content loaded lazily.

        Raises:
            PartitionReadError: If any partition could not be read.
        """
        self.metrics.inc_browse(self.queue_name)
        try:
            items = await self.browser.browse(self.queue_name)
        except PartitionReadError:
            self.metrics.inc_browse_failure(self.queue_name)
            raise
        return self._count_load_errors(items)

    async def browse_references(self) -> list[MailReference]:
        """Pending mails oldest first, without content."""
        try:
            return await self.browser.browse_references(self.queue_name)
        except PartitionReadError:
            self.metrics.inc_browse_failure(self.queue_name)
            raise

    async def get_size(self) -> int:
        """Number of pending mails."""
        size = len(await self.browse_references())
        self.metrics.set_queue_size(self.queue_name, size)
        return size

    async def is_present(self, mail_key: str) -> bool:
        return any(ref.mail_key == mail_key for ref in await self.browse_references())

    async def delete(self, condition: DeleteCondition) -> int:
        """Tombstone every pending mail matching ``condition``.

        Returns:
            Number of mails tombstoned.
        """
        matches = [ref for ref in await self.browse_references() if condition.matches(ref)]
        await asyncio.gather(*(self._tombstone(ref.mail_key) for ref in matches))
        self.metrics.inc_deleted(self.queue_name, len(matches))
        logger.info(f"Deleted {len(matches)} mails from queue '{self.queue_name}' ({condition})")
        return len(matches)

    async def clear(self) -> int:
        """Tombstone every pending mail."""
        return await self.delete(DeleteCondition.all())

    async def _tombstone(self, mail_key: str) -> None:
        try:
            await self.deleted_mails.mark_as_deleted(self.queue_name, mail_key)
        except Exception as exc:
            logger.error(f"Tombstone write failed for mail '{mail_key}' of queue '{self.queue_name}': {exc}")
            raise TombstoneWriteError(self.queue_name, mail_key) from exc

    async def _count_load_errors(self, items: AsyncIterator[QueueItemView]) -> AsyncIterator[QueueItemView]:
        async for item in items:
            if item.error is not None:
                self.metrics.inc_load_error(self.queue_name, item.error.code)
            yield item


class MailQueueViewFactory:
    """Builds queue views sharing one database, blob store and configuration."""

    def __init__(
        self,
        db: MailQueueViewDb,
        blob_store: BlobStore,
        config: ViewConfig,
        clock: Callable[[], datetime] = utc_now,
        metrics: QueueViewMetrics | None = None,
    ):
        self.db = db
        self.config = config
        self.clock = clock
        self.metrics = metrics or QueueViewMetrics()

        message_store = MimeMessageStore(blob_store)
        self.store = MailStore(db.enqueued_mails, db.browse_start, message_store, config, clock=clock)
        self.loader = MailLoader(db.enqueued_mails, message_store)
        self.browser = MailQueueBrowser(
            db.browse_start, db.enqueued_mails, db.deleted_mails, self.loader, config, clock=clock
        )

    def view(self, queue_name: str) -> MailQueueView:
        """Return a view of ``queue_name`` without initializing it."""
        return MailQueueView(
            queue_name,
            self.store,
            self.browser,
            self.db.deleted_mails,
            clock=self.clock,
            metrics=self.metrics,
        )

    async def create(self, queue_name: str) -> MailQueueView:
        """Return an initialized view. An existing queue keeps its browse start and content."""
        view = self.view(queue_name)
        await view.initialize()
        return view

    async def list_queues(self) -> list[str]:
        return await self.db.browse_start.list_queues()


__all__ = ["MailQueueView", "MailQueueViewFactory"]
