# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Service core of the mail queue view.

``MailQueueViewCore`` wires configuration, database, blob store, metrics and
the queue view factory, and exposes the command API used by the HTTP layer
and the CLI.

Example:
    Running the core::

        from mail_queue_view.core import MailQueueViewCore

        core = MailQueueViewCore(db_path="/data/queue_view.db")
        await core.init()

        await core.handle_command("createQueue", {"queue": "spool"})
        result = await core.handle_command("listMails", {"queue": "spool"})
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from datetime import datetime, timezone
from email import policy
from email.parser import BytesParser
from typing import Any

from .blob_store import BlobStore, SqlBlobStore
from .config_loader import ViewConfig, load_view_config
from .errors import MailQueueViewError
from .logger import get_logger
from .models import DeleteCondition, Mail, QueueItemView
from .prometheus import QueueViewMetrics
from .slicing import utc_now
from .view import MailQueueView, MailQueueViewFactory
from .view_db import MailQueueViewDb


QUEUE_COMMANDS = frozenset(
    {"createQueue", "enqueueMail", "ackMail", "listMails", "queueSize", "deleteMails"}
)


def _iso(instant: datetime) -> str:
    return instant.isoformat().replace("+00:00", "Z")


def _parse_instant(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or epoch seconds into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    instant = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


class MailQueueViewCore:
    """Entry point of the queue view service.

    Attributes:
        config: Partitioning and access settings.
        db: Database holding index, browse starts, tombstones and blobs.
        blob_store: Content store for message parts.
        metrics: Prometheus metrics collector.
        factory: Builds per-queue views.
    """

    def __init__(
        self,
        *,
        db_path: str | None = None,
        config_path: str | None = None,
        config: ViewConfig | None = None,
        blob_store: BlobStore | None = None,
        logger=None,
        metrics: QueueViewMetrics | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the core.

        Args:
            db_path: Database connection string. Overrides the configured one.
            config_path: Optional INI file read when ``config`` is not given.
            config: Ready configuration. Loaded from file/environment if None.
            blob_store: Content store. Defaults to the database ``blobs`` table.
            logger: Custom logger instance. If None, uses default logger.
            metrics: Prometheus metrics collector. If None, creates new instance.
            clock: Callable returning the current aware UTC datetime.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        self.config = config or load_view_config(config_path)
        if db_path:
            self.config = dataclasses.replace(self.config, db_path=db_path)
        self.config.validate()

        self.logger = logger or get_logger()
        self.metrics = metrics or QueueViewMetrics()
        self.db = MailQueueViewDb(self.config.db_path, timeout=self.config.read_timeout_seconds)
        self.blob_store = blob_store or SqlBlobStore(self.db.blobs)
        self.factory = MailQueueViewFactory(
            self.db, self.blob_store, self.config, clock=clock, metrics=self.metrics
        )

    async def init(self) -> None:
        """Connect to the database and create missing tables."""
        await self.db.init_db()
        queues = await self.factory.list_queues()
        self.logger.info(
            f"Queue view ready (db={self.config.db_path}, buckets={self.config.bucket_count}, "
            f"slice_window={self.config.slice_window}, queues={len(queues)})"
        )

    async def close(self) -> None:
        await self.db.close()

    async def create_queue(self, queue_name: str) -> MailQueueView:
        return await self.factory.create(queue_name)

    def view(self, queue_name: str) -> MailQueueView:
        return self.factory.view(queue_name)

    async def list_queues(self) -> list[str]:
        return await self.factory.list_queues()

    # ------------------------------------------------------------------ commands
    async def handle_command(self, cmd: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Execute an external control command.

        Supported commands:
        - ``createQueue``: Initialize a queue (idempotent)
        - ``listQueues``: Names of initialized queues
        - ``enqueueMail``: Index a raw RFC 5322 message with its envelope
        - ``ackMail``: Tombstone a consumed mail
        - ``listMails``: Browse a queue
        - ``queueSize``: Count pending mails
        - ``deleteMails``: Tombstone mails matching sender/recipient/name

        Args:
            cmd: Command name to execute.
            payload: Command-specific parameters.

        Returns:
            dict: Command result with ``ok`` status and command-specific data.
            Failures carry ``error`` and, for queue view errors, ``code``.
        """
        payload = payload or {}
        queue_name = payload.get("queue")
        if cmd in QUEUE_COMMANDS and not queue_name:
            return {"ok": False, "error": "queue required"}
        try:
            match cmd:
                case "createQueue":
                    await self.create_queue(queue_name)
                    return {"ok": True, "queue": queue_name}
                case "listQueues":
                    return {"ok": True, "queues": await self.list_queues()}
                case "enqueueMail":
                    return await self._handle_enqueue_mail(queue_name, payload)
                case "ackMail":
                    name = payload.get("name")
                    if not name:
                        return {"ok": False, "error": "name required"}
                    await self.view(queue_name).delete_mail(name)
                    return {"ok": True}
                case "listMails":
                    mails = [self._item_to_dict(item) async for item in await self.view(queue_name).browse()]
                    return {"ok": True, "queue": queue_name, "mails": mails}
                case "queueSize":
                    size = await self.view(queue_name).get_size()
                    return {"ok": True, "queue": queue_name, "size": size}
                case "deleteMails":
                    condition = DeleteCondition(
                        sender=payload.get("sender") or None,
                        recipient=payload.get("recipient") or None,
                        name=payload.get("name") or None,
                    )
                    deleted = await self.view(queue_name).delete(condition)
                    return {"ok": True, "queue": queue_name, "deleted": deleted}
                case _:
                    return {"ok": False, "error": "unknown command"}
        except MailQueueViewError as exc:
            self.logger.warning(f"Command {cmd} failed on queue '{queue_name}': {exc}")
            return {"ok": False, "error": str(exc), "code": exc.code}

    async def _handle_enqueue_mail(self, queue_name: str, payload: dict[str, Any]) -> dict[str, Any]:
        ok, error = self._validate_enqueue_payload(payload)
        if not ok:
            return {"ok": False, "error": error}
        try:
            enqueued_time = _parse_instant(payload.get("enqueued_time"))
        except (TypeError, ValueError, OverflowError):
            return {"ok": False, "error": f"invalid enqueued_time: {payload.get('enqueued_time')!r}"}

        raw = payload["message"].encode("utf-8", "surrogateescape")
        message = BytesParser(policy=policy.default).parsebytes(raw)
        recipients = payload["recipients"]
        if isinstance(recipients, str):
            recipients = [recipients]
        mail = Mail(
            name=payload["name"],
            sender=payload.get("sender") or None,
            recipients=list(recipients),
            message=message,
            attributes=dict(payload.get("attributes") or {}),
            remote_host=payload.get("remote_host") or "localhost",
            remote_addr=payload.get("remote_addr") or "127.0.0.1",
        )
        enqueued = await self.view(queue_name).store_mail(mail, enqueued_time)
        return {
            "ok": True,
            "queue": queue_name,
            "name": enqueued.mail_key,
            "enqueued_time": _iso(enqueued.enqueued_time),
            "slice": str(enqueued.slice),
            "bucket_id": enqueued.bucket_id,
        }

    @staticmethod
    def _validate_enqueue_payload(payload: dict[str, Any]) -> tuple[bool, str | None]:
        if not payload.get("name"):
            return False, "name required"
        if not payload.get("recipients"):
            return False, "recipients required"
        if not isinstance(payload.get("message"), str) or not payload["message"].strip():
            return False, "message required"
        return True, None

    @staticmethod
    def _item_to_dict(item: QueueItemView) -> dict[str, Any]:
        reference = item.reference
        data: dict[str, Any] = {
            "name": item.mail_key,
            "enqueued_time": _iso(item.enqueued_time),
            "slice": str(reference.bucketed_slice.slice),
            "bucket_id": reference.bucketed_slice.bucket_id,
            "sender": reference.sender,
            "recipients": list(reference.recipients),
        }
        if item.error is not None:
            data["error"] = str(item.error)
            data["error_code"] = item.error.code
            return data
        mail = item.mail
        data["state"] = mail.state
        data["attributes"] = mail.attributes
        if mail.message is not None:
            subject = mail.message.get("Subject")
            data["subject"] = str(subject) if subject is not None else None
            data["size"] = len(mail.message.as_bytes())
        return data


__all__ = ["MailQueueViewCore"]
