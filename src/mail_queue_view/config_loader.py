# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for the mail queue view.

Settings come from an INI-style configuration file or from environment
variables.

Example:
    Configuration file format (config.ini)::

        [queue_view]
        db_path = /data/queue_view.db
        bucket_count = 4
        slice_window_seconds = 3600
        read_timeout_seconds = 10
        read_concurrency = 32

    Loading the configuration::

        config = load_view_config("/etc/mail-queue-view/config.ini")
        # Returns a validated ViewConfig dataclass
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from .errors import ConfigurationError
from .logger import get_logger

DEFAULT_DB_PATH = "/data/queue_view.db"


@dataclass
class ViewConfig:
    """Partitioning and access settings shared by every queue view.

    Changing ``bucket_count`` or ``slice_window`` on a populated database
    makes already indexed mails unreachable, so both must stay stable for the
    lifetime of the data.

    Attributes:
        bucket_count: Number of hash buckets per time slice.
        slice_window: Width of a time slice.
        db_path: Database connection string (path or postgresql DSN).
        read_timeout_seconds: Bound on each partition read during a browse.
        read_concurrency: Maximum partition reads in flight per browse.
    """

    bucket_count: int = 1
    slice_window: timedelta = field(default_factory=lambda: timedelta(hours=1))
    db_path: str = DEFAULT_DB_PATH
    read_timeout_seconds: float = 10.0
    read_concurrency: int = 32

    def validate(self) -> ViewConfig:
        """Validate the values and return self.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        if self.bucket_count <= 0:
            raise ConfigurationError(f"bucket_count must be positive, got {self.bucket_count}")
        if self.slice_window.total_seconds() < 1 or self.slice_window.total_seconds() % 1:
            raise ConfigurationError(
                f"slice_window must be a positive whole number of seconds, got {self.slice_window}"
            )
        if self.read_timeout_seconds <= 0:
            raise ConfigurationError(
                f"read_timeout_seconds must be positive, got {self.read_timeout_seconds}"
            )
        if self.read_concurrency <= 0:
            raise ConfigurationError(f"read_concurrency must be positive, got {self.read_concurrency}")
        return self


logger = get_logger("config_loader")


def load_view_config(config_path: str | None = None) -> ViewConfig:
    """Load the view configuration from config file or environment.

    Priority: config file > environment variables > defaults.

    Environment variables:
        MQV_DB_PATH: Database connection string
        MQV_BUCKET_COUNT: Hash buckets per slice
        MQV_SLICE_WINDOW_SECONDS: Slice width in seconds
        MQV_READ_TIMEOUT_SECONDS: Partition read timeout
        MQV_READ_CONCURRENCY: Concurrent partition reads per browse

    Args:
        config_path: Optional path to config.ini file.

    Returns:
        A validated ViewConfig.

    Raises:
        ConfigurationError: If a value is malformed or out of range.
    """
    config_values: dict = {}

    env_mapping = {
        "db_path": ("MQV_DB_PATH", str, DEFAULT_DB_PATH),
        "bucket_count": ("MQV_BUCKET_COUNT", int, 1),
        "slice_window_seconds": ("MQV_SLICE_WINDOW_SECONDS", int, 3600),
        "read_timeout_seconds": ("MQV_READ_TIMEOUT_SECONDS", float, 10.0),
        "read_concurrency": ("MQV_READ_CONCURRENCY", int, 32),
    }

    for key, (env_var, type_fn, default) in env_mapping.items():
        env_value = os.environ.get(env_var)
        if env_value is not None:
            try:
                config_values[key] = type_fn(env_value)
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {env_value!r}") from e
        else:
            config_values[key] = default

    if config_path:
        if not Path(config_path).exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        config = configparser.ConfigParser()
        config.read(config_path)

        if config.has_section("queue_view"):
            section = config["queue_view"]
            try:
                config_values["db_path"] = section.get("db_path", config_values["db_path"]).strip()
                config_values["bucket_count"] = section.getint("bucket_count", config_values["bucket_count"])
                config_values["slice_window_seconds"] = section.getint(
                    "slice_window_seconds", config_values["slice_window_seconds"]
                )
                config_values["read_timeout_seconds"] = section.getfloat(
                    "read_timeout_seconds", config_values["read_timeout_seconds"]
                )
                config_values["read_concurrency"] = section.getint(
                    "read_concurrency", config_values["read_concurrency"]
                )
            except ValueError as e:
                raise ConfigurationError(f"Invalid [queue_view] setting in {config_path}: {e}") from e
        else:
            logger.info(f"No [queue_view] section in {config_path}, using environment and defaults")

    window_seconds = config_values.pop("slice_window_seconds")
    if window_seconds <= 0:
        raise ConfigurationError(f"slice_window_seconds must be positive, got {window_seconds}")

    return ViewConfig(slice_window=timedelta(seconds=window_seconds), **config_values).validate()
