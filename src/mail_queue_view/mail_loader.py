# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Read path: materialise a listed mail from its index row and content."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .errors import BlobNotFoundError, ContentMissingError, MailLoadError
from .logger import get_logger

if TYPE_CHECKING:
    from .blob_store import MimeMessageStore
    from .models import Mail, MailReference
    from .tables import EnqueuedMailsTable

logger = get_logger("MailLoader")


class MailLoader:
    """Joins an index row with its stored message."""

    def __init__(self, enqueued_mails: EnqueuedMailsTable, message_store: MimeMessageStore):
        self.enqueued_mails = enqueued_mails
        self.message_store = message_store

    async def load(self, reference: MailReference) -> Mail | None:
        """Return the mail behind ``reference`` with its message attached.

        Returns:
            The populated mail, or None if the index row no longer exists.

        Raises:
            ContentMissingError: The row exists but its content is gone.
            MailLoadError: Any other failure reading the row or the content.
        """
        try:
            enqueued = await self.enqueued_mails.find(reference)
        except Exception as exc:
            raise MailLoadError(reference.queue_name, reference.mail_key, f"index read failed: {exc}") from exc

        if enqueued is None:
            logger.info(
                f"Mail '{reference.mail_key}' of queue '{reference.queue_name}' is no longer indexed"
            )
            return None

        try:
            message = await self.message_store.read(enqueued.parts_id)
        except BlobNotFoundError as exc:
            raise ContentMissingError(reference.queue_name, reference.mail_key, enqueued.parts_id) from exc
        except Exception as exc:
            raise MailLoadError(
                reference.queue_name, reference.mail_key, f"content read failed: {exc}"
            ) from exc

        mail = enqueued.mail
        mail.message = message
        return mail


__all__ = ["MailLoader"]
