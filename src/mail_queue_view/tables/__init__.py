# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Table managers for the mail queue view database."""

from .blobs import BlobsTable
from .browse_start import BrowseStartTable
from .deleted_mails import DeletedMailsTable
from .enqueued_mails import EnqueuedMailsTable

__all__ = [
    "BlobsTable",
    "BrowseStartTable",
    "DeletedMailsTable",
    "EnqueuedMailsTable",
]
