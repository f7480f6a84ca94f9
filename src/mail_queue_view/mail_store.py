# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Write path: record an enqueued mail in the index.

The message content is stored in the blob store first; only once it is
durable is the index row written, so a row never points at missing content.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from .config_loader import ViewConfig
from .errors import EnqueueError
from .logger import get_logger
from .models import EnqueuedMail, Mail
from .slicing import Slice, compute_bucket_id, utc_now

if TYPE_CHECKING:
    from .blob_store import MimeMessageStore
    from .tables import BrowseStartTable, EnqueuedMailsTable

logger = get_logger("MailStore")


class MailStore:
    """Indexes mails of any queue sharing one partitioning configuration.

    Args:
        enqueued_mails: Index table.
        browse_start: Browse start table.
        message_store: Content store for MIME messages.
        config: Partitioning settings (bucket count, slice window).
        clock: Callable returning the current aware UTC datetime.
    """

    def __init__(
        self,
        enqueued_mails: EnqueuedMailsTable,
        browse_start: BrowseStartTable,
        message_store: MimeMessageStore,
        config: ViewConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.enqueued_mails = enqueued_mails
        self.browse_start = browse_start
        self.message_store = message_store
        self.config = config
        self.clock = clock

    async def store_mail(self, mail: Mail, queue_name: str, enqueued_time: datetime) -> EnqueuedMail:
        """Persist content, then write the index row under its partition.

        A queue without a browse start is initialized first, so the new row
        is always inside the range a browse scans.

        Raises:
            EnqueueError: If content or index row could not be written, or if
                ``enqueued_time`` falls before the queue's browse start. The
                mail must then not be considered queued.
        """
        if mail.message is None:
            raise EnqueueError(queue_name, mail.name, "mail has no message content")

        mail_slice = Slice.of(enqueued_time, self.config.slice_window)
        await self._ensure_reachable(queue_name, mail.name, mail_slice)

        try:
            parts_id = await self.message_store.save(mail.message)
        except Exception as exc:
            logger.error(f"Content write failed for mail '{mail.name}' of queue '{queue_name}': {exc}")
            raise EnqueueError(queue_name, mail.name, f"content write failed: {exc}") from exc

        enqueued = EnqueuedMail(
            mail=mail.envelope(),
            queue_name=queue_name,
            slice=mail_slice,
            bucket_id=compute_bucket_id(mail.name, self.config.bucket_count),
            enqueued_time=enqueued_time,
            parts_id=parts_id,
        )

        try:
            await self.enqueued_mails.insert(enqueued)
        except Exception as exc:
            logger.error(f"Index write failed for mail '{mail.name}' of queue '{queue_name}': {exc}")
            raise EnqueueError(queue_name, mail.name, f"index write failed: {exc}") from exc

        logger.debug(
            f"Indexed mail '{mail.name}' in queue '{queue_name}' "
            f"(slice={enqueued.slice}, bucket={enqueued.bucket_id})"
        )
        return enqueued

    async def initialize_browse_start(self, queue_name: str) -> None:
        """Record the current slice as the browse floor unless one exists."""
        await self._insert_browse_start(queue_name, Slice.of(self.clock(), self.config.slice_window))

    async def _insert_browse_start(self, queue_name: str, start: Slice) -> bool:
        if await self.browse_start.insert_initial_browse_start(queue_name, start.start):
            logger.info(f"Initialized browse start of queue '{queue_name}' at {start}")
            return True
        return False

    async def _ensure_reachable(self, queue_name: str, mail_key: str, mail_slice: Slice) -> None:
        """Make sure a browse of ``queue_name`` will scan ``mail_slice``."""
        window = self.config.slice_window
        try:
            browse_start = await self.browse_start.find_browse_start(queue_name)
            if browse_start is None:
                start = min(Slice.of(self.clock(), window), mail_slice)
                if await self._insert_browse_start(queue_name, start):
                    return
                browse_start = await self.browse_start.find_browse_start(queue_name)
        except Exception as exc:
            logger.error(f"Browse start access failed for queue '{queue_name}': {exc}")
            raise EnqueueError(queue_name, mail_key, f"browse start access failed: {exc}") from exc

        if browse_start is not None and mail_slice < Slice.of(browse_start, window):
            raise EnqueueError(
                queue_name,
                mail_key,
                f"enqueued time in slice {mail_slice} is before the browse start {Slice.of(browse_start, window)}",
            )


__all__ = ["MailStore"]
