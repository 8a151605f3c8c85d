# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Prometheus metrics for the OAuth client store.

Every collector owns its registry, so several databases in one process can
report separately. Metrics are labelled by record key ("<db>:<partition>").
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest


logger = logging.getLogger(__name__)


@dataclass
class MetricsConfig:
    """Configuration for metrics collection."""

    enabled: bool = True
    namespace: str = "oauthdb"


class StoreMetrics:
    """Metrics collector for partition stores and their cleanup tasks."""

    def __init__(self, config: Optional[MetricsConfig] = None,
                 registry: Optional[CollectorRegistry] = None):
        """
        Initialize the collector.

        Args:
            config: Metrics configuration
            registry: Prometheus registry to register with; a private one by default
        """
        self.config = config or MetricsConfig()
        self.registry = registry or CollectorRegistry()
        self._counts: Dict[str, float] = {}

        ns = self.config.namespace

        self.operations = Counter(
            f'{ns}_store_operations_total',
            'Total number of partition store operations',
            ['store', 'operation'],
            registry=self.registry
        )

        self.backend_calls = Counter(
            f'{ns}_backend_calls_total',
            'Total number of record loads and persists',
            ['store', 'operation', 'status'],
            registry=self.registry
        )

        self.backend_latency = Histogram(
            f'{ns}_backend_duration_seconds',
            'Record load and persist duration in seconds',
            ['operation'],
            buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
            registry=self.registry
        )

        self.expired_entries = Counter(
            f'{ns}_expired_entries_total',
            'Total number of expired entries removed',
            ['store', 'source'],
            registry=self.registry
        )

        self.invalidations = Counter(
            f'{ns}_cache_invalidations_total',
            'Total number of cached records dropped after foreign writes',
            ['store'],
            registry=self.registry
        )

        self.cleanup_runs = Counter(
            f'{ns}_cleanup_runs_total',
            'Total number of cleanup attempts by outcome',
            ['store', 'outcome'],
            registry=self.registry
        )

    def _count(self, key: str, amount: float = 1) -> None:
        self._counts[key] = self._counts.get(key, 0) + amount

    def get_count(self, key: str) -> float:
        """Value of an internal counter, e.g. "persist:db:states:error"."""
        return self._counts.get(key, 0)

    def record_operation(self, store: str, operation: str) -> None:
        """Record a get/set/delete/keys call."""
        if not self.config.enabled:
            return
        self._count(f"{operation}:{store}")
        self.operations.labels(store=store, operation=operation).inc()

    def record_backend_call(self, store: str, operation: str, status: str) -> None:
        """Record the outcome of a load or persist."""
        if not self.config.enabled:
            return
        self._count(f"{operation}:{store}:{status}")
        self.backend_calls.labels(store=store, operation=operation, status=status).inc()

    @contextmanager
    def time_backend_call(self, operation: str) -> Iterator[None]:
        """Observe the duration of the wrapped backend call."""
        start = time.perf_counter()
        try:
            yield
        finally:
            if self.config.enabled:
                self.backend_latency.labels(operation=operation).observe(time.perf_counter() - start)

    def record_expired(self, store: str, count: int, source: str) -> None:
        """Record entries removed on read ("read") or by the sweep ("sweep")."""
        if not self.config.enabled or count <= 0:
            return
        self._count(f"expired:{store}:{source}", count)
        self.expired_entries.labels(store=store, source=source).inc(count)

    def record_invalidation(self, store: str) -> None:
        """Record a cache drop caused by another context's write."""
        if not self.config.enabled:
            return
        self._count(f"invalidated:{store}")
        self.invalidations.labels(store=store).inc()

    def record_cleanup(self, store: str, outcome: str) -> None:
        """Record a cleanup attempt: swept, skipped, cancelled or error."""
        if not self.config.enabled:
            return
        self._count(f"cleanup:{store}:{outcome}")
        self.cleanup_runs.labels(store=store, outcome=outcome).inc()
        logger.debug(f"Recorded cleanup of {store}: {outcome}")

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the internal counters."""
        return dict(self._counts)
