# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for CLI commands and helper functions."""

import json

import pytest
from click.testing import CliRunner

from mail_queue_view.cli import get_core, main, run_async
from mail_queue_view.core import MailQueueViewCore

MESSAGE = """From: alice@example.com
To: bob@example.com
Subject: Quarterly report

The report is attached in spirit.
"""


class TestHelperFunctions:
    def test_get_core(self, tmp_path):
        core = get_core(str(tmp_path / "cli.db"), None)
        assert isinstance(core, MailQueueViewCore)
        assert core.config.db_path == str(tmp_path / "cli.db")

    def test_run_async(self):
        async def answer():
            return 42

        assert run_async(answer()) == 42


@pytest.fixture
def cli(tmp_path):
    runner = CliRunner()
    db = str(tmp_path / "cli.db")

    def invoke(*args):
        return runner.invoke(main, ["--db", db, *args])

    return invoke


@pytest.fixture
def eml(tmp_path):
    path = tmp_path / "report.eml"
    path.write_text(MESSAGE, encoding="utf-8")
    return path


class TestQueueCommands:
    def test_init_and_queues(self, cli):
        result = cli("init", "spool")
        assert result.exit_code == 0, result.output
        assert "Queue 'spool' initialized" in result.output

        result = cli("queues", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == ["spool"]

    def test_queues_when_empty(self, cli):
        result = cli("queues")
        assert result.exit_code == 0
        assert "No queues initialized" in result.output

    def test_enqueue_list_size(self, cli, eml):
        cli("init", "spool")
        result = cli("enqueue", "spool", str(eml), "--sender", "alice@example.com", "-r", "bob@example.com")
        assert result.exit_code == 0, result.output
        assert "Mail 'report.eml' indexed in queue 'spool'" in result.output

        result = cli("enqueue", "spool", str(eml), "-r", "carol@example.com", "--name", "second")
        assert result.exit_code == 0, result.output

        result = cli("list", "spool", "--json")
        assert result.exit_code == 0, result.output
        mails = json.loads(result.output)
        assert {m["name"] for m in mails} == {"report.eml", "second"}
        assert all(m["subject"] == "Quarterly report" for m in mails)

        result = cli("size", "spool")
        assert result.exit_code == 0
        assert result.output.strip() == "2"

    def test_list_empty_queue(self, cli):
        cli("init", "spool")
        result = cli("list", "spool")
        assert result.exit_code == 0
        assert "Queue 'spool' is empty" in result.output

    def test_enqueue_requires_recipient(self, cli, eml):
        result = cli("enqueue", "spool", str(eml))
        assert result.exit_code == 2

    def test_delete_and_ack(self, cli, eml):
        cli("init", "spool")
        cli("enqueue", "spool", str(eml), "-s", "alice@example.com", "-r", "bob@example.com", "-n", "m1")
        cli("enqueue", "spool", str(eml), "-s", "dave@example.com", "-r", "bob@example.com", "-n", "m2")
        cli("enqueue", "spool", str(eml), "-s", "dave@example.com", "-r", "bob@example.com", "-n", "m3")

        result = cli("delete", "spool", "--sender", "alice@example.com")
        assert result.exit_code == 0, result.output
        assert "Deleted 1 mails from queue 'spool'" in result.output

        result = cli("ack", "spool", "m2")
        assert result.exit_code == 0
        assert "Mail 'm2' removed from queue 'spool'" in result.output
        assert cli("size", "spool").output.strip() == "1"

        result = cli("delete", "spool", "--all")
        assert result.exit_code == 0
        assert "Deleted 1 mails" in result.output
        assert cli("size", "spool").output.strip() == "0"

    def test_delete_needs_a_filter(self, cli):
        result = cli("delete", "spool")
        assert result.exit_code == 2

    def test_invalid_configuration_exits(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MQV_BUCKET_COUNT", "0")
        result = CliRunner().invoke(main, ["--db", str(tmp_path / "cli.db"), "queues"])
        assert result.exit_code == 2

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0


def test_enqueue_utf8_eml(cli, tmp_path):
    path = tmp_path / "dessert.eml"
    path.write_bytes(
        "From: alice@example.com\nSubject: Café\nContent-Type: text/plain; charset=utf-8\n"
        "Content-Transfer-Encoding: 8bit\n\nCrème brûlée.\n".encode("utf-8")
    )
    cli("init", "spool")

    result = cli("enqueue", "spool", str(path), "-r", "bob@example.com")
    assert result.exit_code == 0, result.output

    [mail] = json.loads(cli("list", "spool", "--json").output)
    assert mail["subject"] == "Café"
