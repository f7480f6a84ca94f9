# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for view configuration loading from environment and config.ini."""

from datetime import timedelta

import pytest

from mail_queue_view.config_loader import DEFAULT_DB_PATH, ViewConfig, load_view_config
from mail_queue_view.errors import ConfigurationError


def test_defaults():
    config = load_view_config()
    assert config.bucket_count == 1
    assert config.slice_window == timedelta(hours=1)
    assert config.db_path == DEFAULT_DB_PATH
    assert config.read_timeout_seconds == 10.0
    assert config.read_concurrency == 32


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("MQV_DB_PATH", "/tmp/env.db")
    monkeypatch.setenv("MQV_BUCKET_COUNT", "8")
    monkeypatch.setenv("MQV_SLICE_WINDOW_SECONDS", "600")
    monkeypatch.setenv("MQV_READ_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("MQV_READ_CONCURRENCY", "4")

    config = load_view_config()
    assert config.db_path == "/tmp/env.db"
    assert config.bucket_count == 8
    assert config.slice_window == timedelta(minutes=10)
    assert config.read_timeout_seconds == 2.5
    assert config.read_concurrency == 4


def test_config_file_overrides_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MQV_BUCKET_COUNT", "8")
    monkeypatch.setenv("MQV_READ_CONCURRENCY", "4")
    config_file = tmp_path / "config.ini"
    config_file.write_text(
        """
[queue_view]
db_path = /data/file.db
bucket_count = 16
slice_window_seconds = 1800
"""
    )

    config = load_view_config(str(config_file))
    assert config.db_path == "/data/file.db"
    assert config.bucket_count == 16
    assert config.slice_window == timedelta(minutes=30)
    assert config.read_concurrency == 4


def test_config_file_without_section_keeps_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("MQV_BUCKET_COUNT", "2")
    config_file = tmp_path / "config.ini"
    config_file.write_text("[other]\nkey = value\n")

    assert load_view_config(str(config_file)).bucket_count == 2


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_view_config(str(tmp_path / "missing.ini"))


@pytest.mark.parametrize(
    "var,value",
    [
        ("MQV_BUCKET_COUNT", "0"),
        ("MQV_BUCKET_COUNT", "-3"),
        ("MQV_BUCKET_COUNT", "four"),
        ("MQV_SLICE_WINDOW_SECONDS", "0"),
        ("MQV_READ_TIMEOUT_SECONDS", "0"),
        ("MQV_READ_CONCURRENCY", "0"),
    ],
)
def test_invalid_environment_values(monkeypatch, var, value):
    monkeypatch.setenv(var, value)
    with pytest.raises(ConfigurationError):
        load_view_config()


def test_invalid_file_value(tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[queue_view]\nbucket_count = many\n")
    with pytest.raises(ConfigurationError):
        load_view_config(str(config_file))


def test_validate_rejects_fractional_window():
    with pytest.raises(ConfigurationError):
        ViewConfig(slice_window=timedelta(milliseconds=1500)).validate()


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        ViewConfig(bucket_count=0).validate()
    assert ConfigurationError("x").code == "invalid_configuration"
