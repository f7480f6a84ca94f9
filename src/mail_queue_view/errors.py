# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exceptions raised by the mail queue view.

Every error carries a stable ``code`` so that the command layer and the HTTP
API can report it without parsing messages. Low-level store errors are always
chained (``raise ... from exc``) and never retried here.
"""

from __future__ import annotations

from typing import Any


class MailQueueViewError(Exception):
    """Base class for all queue view errors."""

    code = "queue_view_error"


class ConfigurationError(MailQueueViewError, ValueError):
    """Raised at startup when the view configuration is unusable."""

    code = "invalid_configuration"


class BlobNotFoundError(MailQueueViewError):
    """Raised by a blob store when no content is stored under ``blob_id``."""

    code = "blob_not_found"

    def __init__(self, blob_id: str):
        super().__init__(f"No blob stored under id '{blob_id}'")
        self.blob_id = blob_id


class EnqueueError(MailQueueViewError):
    """Content or index row could not be durably written, or the mail
    would fall before the browse start of its queue.

    The caller must not consider the mail queued.
    """

    code = "enqueue_failed"

    def __init__(self, queue_name: str, mail_key: str, reason: str = "write failed"):
        super().__init__(f"Cannot enqueue mail '{mail_key}' in queue '{queue_name}': {reason}")
        self.queue_name = queue_name
        self.mail_key = mail_key


class PartitionReadError(MailQueueViewError):
    """One index partition could not be read; the whole browse fails."""

    code = "partition_read_failed"

    def __init__(
        self, queue_name: str, slice_start: Any, bucket_id: int | None, reason: str = "read failed"
    ):
        super().__init__(
            f"Cannot read partition (queue='{queue_name}', slice={slice_start}, "
            f"bucket={bucket_id}): {reason}"
        )
        self.queue_name = queue_name
        self.slice_start = slice_start
        self.bucket_id = bucket_id


class MailLoadError(MailQueueViewError):
    """A listed mail could not be materialised. Reported per item."""

    code = "load_failed"

    def __init__(self, queue_name: str, mail_key: str, reason: str = "load failed"):
        super().__init__(f"Cannot load mail '{mail_key}' of queue '{queue_name}': {reason}")
        self.queue_name = queue_name
        self.mail_key = mail_key


class ContentMissingError(MailLoadError):
    """The index still references content that the blob store no longer has."""

    code = "content_missing"

    def __init__(self, queue_name: str, mail_key: str, parts_id: Any):
        super().__init__(queue_name, mail_key, f"content {parts_id} is missing from the blob store")
        self.parts_id = parts_id


class TombstoneWriteError(MailQueueViewError):
    """A deletion marker could not be written."""

    code = "tombstone_failed"

    def __init__(self, queue_name: str, mail_key: str):
        super().__init__(f"Cannot mark mail '{mail_key}' of queue '{queue_name}' as deleted")
        self.queue_name = queue_name
        self.mail_key = mail_key


__all__ = [
    "BlobNotFoundError",
    "ConfigurationError",
    "ContentMissingError",
    "EnqueueError",
    "MailLoadError",
    "MailQueueViewError",
    "PartitionReadError",
    "TombstoneWriteError",
]
