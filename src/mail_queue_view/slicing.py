# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Time slices and hash buckets partitioning the enqueued-mail index.

A partition of the index is identified by ``(queue_name, slice, bucket_id)``:

- The slice is a half-open window ``[start, start + window)`` aligned on
  multiples of the window length since the Unix epoch.
- The bucket spreads the mails of one slice over ``bucket_count`` partitions
  using a stable hash of the mail key.

Everything here is pure computation without I/O.
"""

from __future__ import annotations

import zlib
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Default clock: the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def epoch_seconds(instant: datetime) -> int:
    """Whole seconds since the epoch. A naive datetime is read as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return int(instant.timestamp() // 1)


def _window_seconds(slice_window: timedelta) -> int:
    return int(slice_window.total_seconds())


@dataclass(frozen=True, order=True)
class Slice:
    """Start of a time window, as whole seconds since the epoch."""

    start_epoch: int

    @classmethod
    def of(cls, instant: datetime, slice_window: timedelta) -> Slice:
        """Return the slice of width ``slice_window`` containing ``instant``."""
        window = _window_seconds(slice_window)
        return cls((epoch_seconds(instant) // window) * window)

    @classmethod
    def from_epoch(cls, start_epoch: int) -> Slice:
        return cls(int(start_epoch))

    @property
    def start(self) -> datetime:
        return datetime.fromtimestamp(self.start_epoch, tz=timezone.utc)

    def next(self, slice_window: timedelta) -> Slice:
        return Slice(self.start_epoch + _window_seconds(slice_window))

    def __str__(self) -> str:
        return self.start.isoformat().replace("+00:00", "Z")


def all_slices_till(first_slice: Slice, until: datetime, slice_window: timedelta) -> Iterator[Slice]:
    """Yield every slice from ``first_slice`` to the one containing ``until``.

    Both ends are included. The sequence is empty when ``first_slice`` starts
    after ``until``. Calling the function again restarts the sequence.
    """
    last = Slice.of(until, slice_window)
    current = first_slice
    while current <= last:
        yield current
        current = current.next(slice_window)


def compute_bucket_id(mail_key: str, bucket_count: int) -> int:
    """Map a mail key to a bucket in ``[0, bucket_count)``.

    CRC-32 over the UTF-8 bytes of the key: identical on every process,
    interpreter version and platform.
    """
    return zlib.crc32(mail_key.encode("utf-8")) % bucket_count


@dataclass(frozen=True)
class BucketedSlice:
    """One index partition of a queue: a slice and a bucket within it."""

    slice: Slice
    bucket_id: int


__all__ = [
    "BucketedSlice",
    "Slice",
    "all_slices_till",
    "compute_bucket_id",
    "epoch_seconds",
    "utc_now",
]
