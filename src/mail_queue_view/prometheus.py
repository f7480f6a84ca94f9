# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring queue views.

All metrics use the ``mqv_`` prefix (mail-queue-view).

Metrics exposed:
    - ``mqv_enqueued_total``: Counter of mails indexed per queue.
    - ``mqv_deleted_total``: Counter of tombstones written per queue.
    - ``mqv_browse_total``: Counter of browse requests per queue.
    - ``mqv_browse_failures_total``: Counter of browses failed on a partition read.
    - ``mqv_load_errors_total``: Counter of per-item load failures, by kind.
    - ``mqv_queue_size``: Gauge of the last computed size of each queue.

Example:
    Accessing metrics via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class QueueViewMetrics:
    """Prometheus metrics collector for queue views.

    Every metric is labeled by ``queue`` so that each queue can be monitored
    on its own.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        enqueued: Counter of mails written to the index.
        deleted: Counter of tombstones written.
        browses: Counter of browse requests.
        browse_failures: Counter of browses aborted by a partition read failure.
        load_errors: Counter of mails that could not be materialised.
        queue_size: Gauge of pending mails.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. A new one is
                created when omitted.
        """
        self.registry = registry or CollectorRegistry()
        self.enqueued = Counter(
            "mqv_enqueued_total",
            "Total mails indexed",
            ["queue"],
            registry=self.registry,
        )
        self.deleted = Counter(
            "mqv_deleted_total",
            "Total mails tombstoned",
            ["queue"],
            registry=self.registry,
        )
        self.browses = Counter(
            "mqv_browse_total",
            "Total browse requests",
            ["queue"],
            registry=self.registry,
        )
        self.browse_failures = Counter(
            "mqv_browse_failures_total",
            "Total browses failed on a partition read",
            ["queue"],
            registry=self.registry,
        )
        self.load_errors = Counter(
            "mqv_load_errors_total",
            "Total mails that could not be loaded",
            ["queue", "kind"],
            registry=self.registry,
        )
        self.queue_size = Gauge(
            "mqv_queue_size",
            "Pending mails at last size computation",
            ["queue"],
            registry=self.registry,
        )

    def inc_enqueued(self, queue: str) -> None:
        self.enqueued.labels(queue=queue).inc()

    def inc_deleted(self, queue: str, count: int = 1) -> None:
        """Add ``count`` tombstones for a queue. Zero is ignored."""
        if count:
            self.deleted.labels(queue=queue).inc(count)

    def inc_browse(self, queue: str) -> None:
        self.browses.labels(queue=queue).inc()

    def inc_browse_failure(self, queue: str) -> None:
        self.browse_failures.labels(queue=queue).inc()

    def inc_load_error(self, queue: str, kind: str) -> None:
        """Count a per-item load failure.

        Args:
            queue: Queue name.
            kind: Error code of the failure, e.g. "content_missing".
        """
        self.load_errors.labels(queue=queue, kind=kind).inc()

    def set_queue_size(self, queue: str, value: int) -> None:
        self.queue_size.labels(queue=queue).set(value)

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)


__all__ = ["QueueViewMetrics"]
