# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the FastAPI application."""

import asyncio
import types
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from mail_queue_view import api
from mail_queue_view.api import API_TOKEN_HEADER_NAME, create_app
from mail_queue_view.config_loader import ViewConfig
from mail_queue_view.core import MailQueueViewCore

API_TOKEN = "secret-token"

MAIL = {
    "name": "m1",
    "enqueued_time": "2024-05-01T10:15:00Z",
    "slice": "2024-05-01T10:00:00Z",
    "bucket_id": 1,
    "sender": "alice@example.com",
    "recipients": ["bob@example.com"],
    "state": "root",
    "subject": "Hello",
    "size": 120,
    "attributes": {},
}


class DummyService:
    def __init__(self):
        self.calls = []
        self.metrics = types.SimpleNamespace(generate_latest=lambda: b"metrics-data")
        self.fail_with = None

    async def handle_command(self, cmd, payload):
        self.calls.append((cmd, payload))
        if self.fail_with:
            return self.fail_with
        if cmd == "listQueues":
            return {"ok": True, "queues": ["spool"]}
        if cmd == "createQueue":
            return {"ok": True, "queue": payload["queue"]}
        if cmd == "listMails":
            return {"ok": True, "queue": payload["queue"], "mails": [MAIL]}
        if cmd == "queueSize":
            return {"ok": True, "queue": payload["queue"], "size": 1}
        if cmd == "deleteMails":
            return {"ok": True, "queue": payload["queue"], "deleted": 2}
        return {"ok": False, "error": "unknown command"}


@pytest.fixture(autouse=True)
def reset_service():
    original = api.service
    original_token = getattr(api.app.state, "api_token", None)
    api.service = None
    api.app.state.api_token = None
    try:
        yield
    finally:
        api.service = original
        api.app.state.api_token = original_token


@pytest.fixture
def client_and_service():
    svc = DummyService()
    client = TestClient(create_app(svc, api_token=API_TOKEN))
    client.headers.update({API_TOKEN_HEADER_NAME: API_TOKEN})
    return client, svc


def test_health_needs_no_token():
    client = TestClient(create_app(DummyService(), api_token=API_TOKEN))
    assert client.get("/health").json() == {"status": "ok"}


def test_rejects_missing_token():
    client = TestClient(create_app(DummyService(), api_token=API_TOKEN))
    response = client.get("/queues")
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or missing API token"


def test_rejects_wrong_token():
    client = TestClient(create_app(DummyService(), api_token=API_TOKEN))
    response = client.get("/queues", headers={API_TOKEN_HEADER_NAME: "nope"})
    assert response.status_code == 401


def test_returns_500_when_service_missing():
    create_app(DummyService(), api_token=API_TOKEN)
    api.service = None
    client = TestClient(api.app)
    response = client.get("/queues", headers={API_TOKEN_HEADER_NAME: API_TOKEN})
    assert response.status_code == 500
    assert response.json()["detail"] == "Service not initialized"


def test_endpoints_dispatch_to_service(client_and_service):
    client, svc = client_and_service

    assert client.get("/queues").json() == {"ok": True, "queues": ["spool"]}
    assert client.post("/queues/spool").json() == {"ok": True, "queue": "spool"}

    mails = client.get("/queues/spool/mails").json()
    assert mails["mails"][0]["name"] == "m1"
    assert mails["mails"][0]["subject"] == "Hello"
    assert "error" not in mails["mails"][0]

    assert client.get("/queues/spool/size").json()["size"] == 1

    response = client.delete("/queues/spool/mails", params={"sender": "alice@example.com"})
    assert response.json()["deleted"] == 2

    assert svc.calls == [
        ("listQueues", {}),
        ("createQueue", {"queue": "spool"}),
        ("listMails", {"queue": "spool"}),
        ("queueSize", {"queue": "spool"}),
        ("deleteMails", {"queue": "spool", "sender": "alice@example.com", "recipient": None, "name": None}),
    ]


def test_metrics_endpoint(client_and_service):
    client, _ = client_and_service
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.content == b"metrics-data"


def test_partition_failure_is_service_unavailable(client_and_service):
    client, svc = client_and_service
    svc.fail_with = {"ok": False, "error": "Cannot read partition", "code": "partition_read_failed"}

    response = client.get("/queues/spool/mails")
    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "partition_read_failed"


def test_other_failures(client_and_service):
    client, svc = client_and_service
    svc.fail_with = {"ok": False, "error": "Cannot mark", "code": "tombstone_failed"}
    assert client.delete("/queues/spool/mails").status_code == 500

    svc.fail_with = {"ok": False, "error": "queue required"}
    assert client.get("/queues/spool/size").status_code == 400


def test_against_real_core(tmp_path):
    now = datetime(2024, 5, 1, 10, 15, tzinfo=timezone.utc)
    core = MailQueueViewCore(
        config=ViewConfig(db_path=str(tmp_path / "api.db"), bucket_count=4),
        clock=lambda: now,
    )
    asyncio.run(core.init())
    client = TestClient(create_app(core))

    assert client.post("/queues/spool").status_code == 200
    for name in ("m1", "m2"):
        result = asyncio.run(
            core.handle_command(
                "enqueueMail",
                {
                    "queue": "spool",
                    "name": name,
                    "sender": "alice@example.com",
                    "recipients": ["bob@example.com"],
                    "message": f"Subject: {name}\n\nbody {name}\n",
                },
            )
        )
        assert result["ok"] is True

    mails = client.get("/queues/spool/mails").json()["mails"]
    assert [m["subject"] for m in mails] == ["m1", "m2"]

    assert client.delete("/queues/spool/mails", params={"name": "m1"}).json()["deleted"] == 1
    assert client.get("/queues/spool/size").json()["size"] == 1
    assert client.delete("/queues/spool/mails").json()["deleted"] == 1
    assert client.get("/queues").json()["queues"] == ["spool"]
    assert b"mqv_enqueued_total" in client.get("/metrics").content
