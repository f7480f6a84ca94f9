# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Domain objects of the mail queue view.

Models:
    - Mail: envelope plus MIME message, as handed over by the broker path
    - MimeMessagePartsId: blob ids of a stored message
    - EnqueuedMail: one row of the enqueued-mail index
    - MailReference: lightweight row returned by a partition scan
    - QueueItemView: one browse result, materialised or failed
    - DeleteCondition: predicate of an administrative delete
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
from email.message import EmailMessage
from typing import TYPE_CHECKING, Any

from .slicing import BucketedSlice, Slice, utc_now

if TYPE_CHECKING:
    from .errors import MailLoadError

DEFAULT_STATE = "root"


@dataclass
class Mail:
    """A mail travelling through a queue.

    ``name`` is the producer-assigned key, unique within a queue while the
    mail is in flight. ``sender`` is None for the null reverse path.
    """

    name: str
    sender: str | None = None
    recipients: list[str] = field(default_factory=list)
    message: EmailMessage | None = None
    state: str = DEFAULT_STATE
    error_message: str | None = None
    remote_host: str = "localhost"
    remote_addr: str = "127.0.0.1"
    last_updated: datetime = field(default_factory=utc_now)
    attributes: dict[str, Any] = field(default_factory=dict)
    per_recipient_headers: dict[str, dict[str, str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Mail name is required")

    @property
    def mail_key(self) -> str:
        return self.name

    def envelope(self) -> Mail:
        """Return a copy of the envelope without the message."""
        return replace(
            self,
            message=None,
            recipients=list(self.recipients),
            attributes=copy.deepcopy(self.attributes),
            per_recipient_headers=copy.deepcopy(self.per_recipient_headers),
        )


@dataclass(frozen=True)
class MimeMessagePartsId:
    """Blob ids under which the header and body of a message are stored."""

    header_blob_id: str
    body_blob_id: str

    def __str__(self) -> str:
        return f"{self.header_blob_id}/{self.body_blob_id}"


@dataclass(frozen=True)
class EnqueuedMail:
    """Index record of a mail: envelope, partition and content pointer."""

    mail: Mail
    queue_name: str
    slice: Slice
    bucket_id: int
    enqueued_time: datetime
    parts_id: MimeMessagePartsId

    @property
    def mail_key(self) -> str:
        return self.mail.name

    @property
    def bucketed_slice(self) -> BucketedSlice:
        return BucketedSlice(self.slice, self.bucket_id)


@dataclass(frozen=True)
class MailReference:
    """What a partition scan returns: enough to filter, sort and reload."""

    queue_name: str
    bucketed_slice: BucketedSlice
    enqueued_time: datetime
    mail_key: str
    sender: str | None = None
    recipients: tuple[str, ...] = ()


@dataclass
class QueueItemView:
    """One browse result.

    Exactly one of ``mail`` and ``error`` is set. A failed item keeps its
    place in the ordering so the caller can skip it or abort.
    """

    reference: MailReference
    mail: Mail | None = None
    error: MailLoadError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def mail_key(self) -> str:
        return self.reference.mail_key

    @property
    def enqueued_time(self) -> datetime:
        return self.reference.enqueued_time


@dataclass(frozen=True)
class DeleteCondition:
    """Logical AND of the given fields. No field set matches every mail."""

    sender: str | None = None
    recipient: str | None = None
    name: str | None = None

    @classmethod
    def all(cls) -> DeleteCondition:
        return cls()

    @property
    def matches_all(self) -> bool:
        return self.sender is None and self.recipient is None and self.name is None

    def matches(self, reference: MailReference) -> bool:
        if self.name is not None and reference.mail_key != self.name:
            return False
        if self.sender is not None and reference.sender != self.sender:
            return False
        if self.recipient is not None and self.recipient not in reference.recipients:
            return False
        return True


__all__ = [
    "DEFAULT_STATE",
    "DeleteCondition",
    "EnqueuedMail",
    "Mail",
    "MailReference",
    "MimeMessagePartsId",
    "QueueItemView",
]
