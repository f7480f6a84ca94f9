# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the content loader."""

import pytest

from mail_queue_view.blob_store import MemoryBlobStore
from mail_queue_view.errors import ContentMissingError, MailLoadError
from mail_queue_view.models import MailReference


class BrokenBlobStore(MemoryBlobStore):
    async def read(self, blob_id):
        raise ConnectionError("blob node unreachable")


async def store_and_reference(factory, mail, when):
    enqueued = await factory.store.store_mail(mail, "spool", when)
    refs = await factory.db.enqueued_mails.select_enqueued_mails("spool", enqueued.bucketed_slice)
    return next(r for r in refs if r.mail_key == mail.name)


@pytest.mark.asyncio
async def test_load_returns_the_populated_mail(build_factory, make_mail, clock):
    factory = await build_factory()
    original = make_mail(
        "m1",
        sender="alice@example.com",
        recipients=("bob@example.com", "carol@example.com"),
        subject="Invoice 42",
        body="Please find the invoice below.",
        attributes={"retries": 1},
    )
    ref = await store_and_reference(factory, original, clock())

    loaded = await factory.loader.load(ref)

    assert loaded is not None
    assert loaded.name == "m1"
    assert loaded.sender == "alice@example.com"
    assert loaded.recipients == ["bob@example.com", "carol@example.com"]
    assert loaded.attributes == {"retries": 1}
    assert loaded.message is not None
    body = loaded.message.get_content().strip()
    assert body
    assert body == original.message.get_content().strip()
    assert loaded.message["Subject"] == "Invoice 42"


@pytest.mark.asyncio
async def test_load_of_vanished_record_returns_none(build_factory, make_mail, clock):
    factory = await build_factory()
    ref = await store_and_reference(factory, make_mail("m1"), clock())
    ghost = MailReference(ref.queue_name, ref.bucketed_slice, ref.enqueued_time, "ghost")

    assert await factory.loader.load(ghost) is None


@pytest.mark.asyncio
async def test_missing_content_is_distinct_error(build_factory, make_mail, clock):
    blobs = MemoryBlobStore()
    factory = await build_factory(blob_store=blobs)
    ref = await store_and_reference(factory, make_mail("m1"), clock())
    record = await factory.db.enqueued_mails.find(ref)
    blobs.delete(record.parts_id.body_blob_id)

    with pytest.raises(ContentMissingError) as exc_info:
        await factory.loader.load(ref)

    assert exc_info.value.code == "content_missing"
    assert exc_info.value.parts_id == record.parts_id
    assert exc_info.value.mail_key == "m1"


@pytest.mark.asyncio
async def test_blob_store_failure_is_a_load_error(build_factory, make_mail, clock):
    factory = await build_factory()
    ref = await store_and_reference(factory, make_mail("m1"), clock())
    factory.loader.message_store.blob_store = BrokenBlobStore()

    with pytest.raises(MailLoadError) as exc_info:
        await factory.loader.load(ref)

    assert not isinstance(exc_info.value, ContentMissingError)
    assert exc_info.value.code == "load_failed"


@pytest.mark.asyncio
async def test_index_failure_is_a_load_error(build_factory, make_mail, clock, monkeypatch):
    factory = await build_factory()
    ref = await store_and_reference(factory, make_mail("m1"), clock())

    async def broken_find(reference):
        raise RuntimeError("read timeout")

    monkeypatch.setattr(factory.db.enqueued_mails, "find", broken_find)

    with pytest.raises(MailLoadError, match="index read failed"):
        await factory.loader.load(ref)
