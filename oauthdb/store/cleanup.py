# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Cooperative cleanup of expired entries.

Each partition has a coordinator that periodically sweeps expired entries
out of the persisted record. Before sweeping, the coordinator tries to take a
named lock ("<record-key>:cleanup") without waiting; if another execution
context holds it, this context skips the round and leaves the work to the
holder. Without a lock service every context sweeps, which is harmless
because a sweep of an already clean record persists nothing.

The sweep recurs every `interval` seconds for the lifetime of the database
unless `recurring` is turned off, in which case it runs once.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

from ..common.cancellation import CancellationToken
from ..errors import ContextInvalidatedError, LockError, StorageIOError, StoreClosedError
from ..locks.types import LockManager

if TYPE_CHECKING:
    from .partition import PartitionStore


logger = logging.getLogger(__name__)


class CleanupOutcome(Enum):
    """Result of one cleanup attempt."""

    SWEPT = "swept"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass
class CleanupResult:
    """Outcome of a cleanup attempt and the number of entries removed."""
    outcome: CleanupOutcome
    removed: int = 0


@dataclass
class CleanupSettings:
    """Timing of the cleanup task, in seconds."""
    delay: float = 10.0
    interval: float = 10.0
    recurring: bool = True
    enabled: bool = True


class CleanupCoordinator:
    """Schedules lock-guarded expiry sweeps for one partition."""

    def __init__(self,
                 store: "PartitionStore",
                 token: CancellationToken,
                 lock_manager: Optional[LockManager] = None,
                 settings: Optional[CleanupSettings] = None):
        """
        Initialize the coordinator.

        Args:
            store: Partition to sweep
            token: Cancellation signal of the owning database
            lock_manager: Named-lock service, or None to sweep unguarded
            settings: Cleanup timing
        """
        self._store = store
        self._token = token
        self._lock_manager = lock_manager
        self.settings = settings or CleanupSettings()
        self._task: Optional[asyncio.Task] = None

    @property
    def lock_name(self) -> str:
        """Name of the advisory lock guarding this partition's sweep."""
        return f"{self._store.storage_key}:cleanup"

    @property
    def scheduled(self) -> bool:
        """True once the background task has been started."""
        return self._task is not None

    def schedule(self) -> None:
        """Start the background cleanup task. Must be called from a running event loop."""
        if self._task is not None or self._token.cancelled or not self.settings.enabled:
            return

        self._task = asyncio.get_running_loop().create_task(self._run())
        self._token.add_callback(self._cancel)
        logger.debug(f"Scheduled cleanup of {self._store.storage_key}")

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the background task to finish after cancellation."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        """Background cleanup loop."""
        key = self._store.storage_key

        while not self._token.cancelled:
            try:
                result = await self.run_once()
            except (StoreClosedError, ContextInvalidatedError) as e:
                logger.debug(f"Stopping cleanup of {key}: {e}")
                return
            except (StorageIOError, LockError) as e:
                logger.error(f"Error during cleanup of {key}: {e}")
            else:
                if result.outcome is CleanupOutcome.CANCELLED:
                    return

            if not self.settings.recurring:
                return
            if not await self._token.sleep(self.settings.interval):
                return

    async def run_once(self) -> CleanupResult:
        """
        Make one cleanup attempt.

        Returns:
            SKIPPED if another context holds the lock, CANCELLED if the
            database was disposed before the sweep, SWEPT otherwise

        Raises:
            StorageIOError: If the record cannot be read or written
            LockError: If the lock service fails
        """
        try:
            result = await self._attempt()
        except (StorageIOError, LockError):
            self._record("error")
            raise
        self._record(result.outcome.value)
        return result

    def _record(self, outcome: str) -> None:
        metrics = self._store.metrics
        if metrics is not None:
            metrics.record_cleanup(self._store.storage_key, outcome)

    async def _attempt(self) -> CleanupResult:
        if self._token.cancelled:
            return CleanupResult(CleanupOutcome.CANCELLED)

        if self._lock_manager is None:
            return await self._sweep_after_delay()

        async with self._lock_manager.acquire(self.lock_name) as acquired:
            if not acquired:
                logger.debug(f"{self.lock_name} is held elsewhere; skipping cleanup")
                return CleanupResult(CleanupOutcome.SKIPPED)
            if self._token.cancelled:
                return CleanupResult(CleanupOutcome.CANCELLED)
            return await self._sweep_after_delay()

    async def _sweep_after_delay(self) -> CleanupResult:
        # The delay keeps the first sweep clear of the store's initial load
        if not await self._token.sleep(self.settings.delay):
            return CleanupResult(CleanupOutcome.CANCELLED)

        removed = await self._store.sweep_expired()
        if removed > 0:
            logger.info(f"Cleaned up {removed} expired entries from {self._store.storage_key}")
        return CleanupResult(CleanupOutcome.SWEPT, removed)
