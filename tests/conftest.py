# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: a controllable clock, mail builders and view factories."""

from datetime import datetime, timedelta, timezone
from email.message import EmailMessage

import pytest

from mail_queue_view.blob_store import SqlBlobStore
from mail_queue_view.config_loader import ViewConfig
from mail_queue_view.models import Mail
from mail_queue_view.view import MailQueueViewFactory
from mail_queue_view.view_db import MailQueueViewDb

T0 = datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)

ENV_VARS = (
    "MQV_DB_PATH",
    "MQV_BUCKET_COUNT",
    "MQV_SLICE_WINDOW_SECONDS",
    "MQV_READ_TIMEOUT_SECONDS",
    "MQV_READ_CONCURRENCY",
    "MQV_CONFIG",
    "MQV_API_TOKEN",
)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "queue_view.db")


@pytest.fixture
def make_mail():
    def _make(
        name,
        sender="alice@example.com",
        recipients=("bob@example.com",),
        subject=None,
        body=None,
        attributes=None,
    ):
        message = EmailMessage()
        message["From"] = sender or "mailer-daemon@example.com"
        message["To"] = ", ".join(recipients)
        message["Subject"] = subject or f"Message {name}"
        message.set_content(body or f"Body of {name}")
        return Mail(
            name=name,
            sender=sender,
            recipients=list(recipients),
            message=message,
            attributes=attributes or {},
        )

    return _make


@pytest.fixture
def build_factory(db_path, clock):
    """Async builder of a factory over a fresh SQLite database."""

    async def _build(bucket_count=4, slice_window=timedelta(hours=1), blob_store=None, **config_kwargs):
        config = ViewConfig(
            bucket_count=bucket_count, slice_window=slice_window, db_path=db_path, **config_kwargs
        ).validate()
        db = MailQueueViewDb(config.db_path)
        await db.init_db()
        store = blob_store if blob_store is not None else SqlBlobStore(db.blobs)
        return MailQueueViewFactory(db, store, config, clock=clock)

    return _build
