# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
OAuth database: the set of partitions an OAuth client persists.

    sessions     account identifier -> Session      no expiry if refreshable,
                                                    else the token's expiry
    states       correlation id     -> PendingState 10 minutes
    dpopNonces   arbitrary string   -> nonce        10 minutes

All partitions share one cancellation token; dispose() fires it and tears
every partition down at once.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from .config import DatabaseConfig
from .types import PendingState, Session, dpop_nonce_policy, pending_state_policy, session_expires_at
from ..backend.types import StorageBackend
from ..common.cancellation import CancellationToken
from ..common.utils import Clock, generate_id, get_current_timestamp_ms
from ..errors import BackendUnavailableError
from ..locks.types import LockManager
from ..metrics.collector import StoreMetrics
from ..store.partition import PartitionStore
from ..store.types import ExpirationPolicy


logger = logging.getLogger(__name__)


class OAuthDatabase:
    """
    Aggregates the named partition stores of one OAuth client.

    Several OAuthDatabase instances sharing a backend (and lock service)
    behave like several execution contexts sharing host storage.
    """

    def __init__(self,
                 config: DatabaseConfig,
                 backend: Optional[StorageBackend],
                 lock_manager: Optional[LockManager] = None,
                 clock: Clock = get_current_timestamp_ms,
                 metrics: Optional[StoreMetrics] = None):
        """
        Initialize the database.

        Args:
            config: Database configuration
            backend: Storage backend chosen by the application
            lock_manager: Named-lock service for cleanup, or None to sweep unguarded
            clock: Source of the current time in milliseconds
            metrics: Collector for store metrics, or None to skip instrumentation

        Raises:
            BackendUnavailableError: If no backend is given
            ConfigurationError: If the configuration is invalid or the lock
                service drops locks before the cleanup delay has passed
        """
        if backend is None:
            raise BackendUnavailableError("No storage backend configured")
        config.validate(lock_manager.lease if lock_manager is not None else None)

        self.name = config.name
        self.context_id = generate_id("ctx_")
        self._config = config
        self._backend = backend
        self._lock_manager = lock_manager
        self._clock = clock
        self.metrics = metrics
        self._token = CancellationToken(config.name)

        self.sessions: PartitionStore[Session] = self._create_store("sessions", session_expires_at)
        self.states: PartitionStore[PendingState] = self._create_store("states", pending_state_policy(clock))
        self.dpop_nonces: PartitionStore[str] = self._create_store("dpopNonces", dpop_nonce_policy(clock))

    @property
    def partitions(self) -> Dict[str, PartitionStore[Any]]:
        """Partition stores keyed by partition name."""
        return {
            store.name: store
            for store in (self.sessions, self.states, self.dpop_nonces)
        }

    @property
    def disposed(self) -> bool:
        """True once dispose() has been called."""
        return self._token.cancelled

    def _create_store(self, name: str, expires_at: ExpirationPolicy) -> PartitionStore[Any]:
        return PartitionStore(
            name=name,
            database_name=self.name,
            backend=self._backend,
            expires_at=expires_at,
            token=self._token,
            clock=self._clock,
            lock_manager=self._lock_manager,
            cleanup_settings=self._config.cleanup_settings(),
            context_id=self.context_id,
            metrics=self.metrics,
        )

    def dispose(self) -> None:
        """
        Tear down every partition.

        In-flight loads and later operations fail with StoreClosedError,
        cleanup tasks stop before touching the backend again and change
        subscriptions are removed. Calling it again has no effect.
        """
        if self._token.cancelled:
            return
        self._token.cancel()
        logger.info(f"Disposed OAuth database {self.name!r}")

    async def close(self) -> None:
        """Dispose and wait for the cleanup tasks to stop."""
        self.dispose()
        await asyncio.gather(*(store.cleanup.wait_closed() for store in self.partitions.values()))

    async def __aenter__(self) -> "OAuthDatabase":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
