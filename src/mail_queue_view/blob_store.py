# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Content-addressed blob storage for message headers and bodies.

Blob ids are the SHA-256 hex digest of the stored bytes, so saving the same
content twice yields the same id and stores it once. Stored content is never
modified.

``MimeMessageStore`` sits on top of a ``BlobStore`` and keeps each message as
two blobs: the header block and the body.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import TYPE_CHECKING

from .errors import BlobNotFoundError
from .models import MimeMessagePartsId

if TYPE_CHECKING:
    from .tables import BlobsTable

HEADER_SEPARATOR = b"\r\n\r\n"


def blob_id_for(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class BlobStore(ABC):
    """Immutable put/get store keyed by content digest."""

    @abstractmethod
    async def save(self, data: bytes) -> str:
        """Store ``data`` and return its blob id."""
        ...

    @abstractmethod
    async def read(self, blob_id: str) -> bytes:
        """Return the content of ``blob_id``.

        Raises:
            BlobNotFoundError: If nothing is stored under ``blob_id``.
        """
        ...


class MemoryBlobStore(BlobStore):
    """Process-local blob store."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def save(self, data: bytes) -> str:
        blob_id = blob_id_for(data)
        self._blobs.setdefault(blob_id, bytes(data))
        return blob_id

    async def read(self, blob_id: str) -> bytes:
        try:
            return self._blobs[blob_id]
        except KeyError:
            raise BlobNotFoundError(blob_id) from None

    def delete(self, blob_id: str) -> None:
        """Drop a blob. Used by retention jobs and tests."""
        self._blobs.pop(blob_id, None)

    def __len__(self) -> int:
        return len(self._blobs)


class SqlBlobStore(BlobStore):
    """Blob store backed by the ``blobs`` table."""

    def __init__(self, table: BlobsTable):
        self.table = table

    async def save(self, data: bytes) -> str:
        blob_id = blob_id_for(data)
        await self.table.save(blob_id, bytes(data))
        return blob_id

    async def read(self, blob_id: str) -> bytes:
        data = await self.table.read(blob_id)
        if data is None:
            raise BlobNotFoundError(blob_id)
        return data


class MimeMessageStore:
    """Stores a MIME message as a header blob and a body blob."""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    @staticmethod
    def split(message: EmailMessage) -> tuple[bytes, bytes]:
        """Serialize ``message`` with CRLF line endings and cut it after the headers."""
        raw = message.as_bytes(policy=policy.SMTP)
        header, sep, body = raw.partition(HEADER_SEPARATOR)
        return header + sep, body

    async def save(self, message: EmailMessage) -> MimeMessagePartsId:
        header, body = self.split(message)
        header_blob_id = await self.blob_store.save(header)
        body_blob_id = await self.blob_store.save(body)
        return MimeMessagePartsId(header_blob_id, body_blob_id)

    async def read(self, parts_id: MimeMessagePartsId) -> EmailMessage:
        header = await self.blob_store.read(parts_id.header_blob_id)
        body = await self.blob_store.read(parts_id.body_blob_id)
        return BytesParser(policy=policy.default).parsebytes(header + body)


__all__ = [
    "BlobStore",
    "MemoryBlobStore",
    "MimeMessageStore",
    "SqlBlobStore",
    "blob_id_for",
]
