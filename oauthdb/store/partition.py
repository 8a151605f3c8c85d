# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Partition store: one named, TTL-aware collection persisted as a single record.

The whole partition lives in one backend record, "<database>:<partition>",
holding a JSON mapping of key to {"value", "expiresAt"}. The record is read
into memory on first use and served from memory afterwards; a foreign write
reported by the change channel discards the in-memory copy.

Every mutation writes the entire record back. When operations on the same
partition finish concurrently (in one context or across contexts) the last
write wins.

Backend I/O failures on ordinary operations are logged and absorbed: a failed
read behaves like an empty record and is not cached, a failed write is
dropped. Only the expiry sweep lets them propagate.
"""

import asyncio
import json
import logging
from contextlib import nullcontext
from typing import ContextManager, Dict, List, Optional

from .types import Entry, ExpirationPolicy, SimpleStore, V
from .listener import ChangeListener
from .cleanup import CleanupCoordinator, CleanupSettings
from ..backend.types import StorageBackend
from ..common.cancellation import CancellationToken
from ..common.utils import Clock, generate_id, get_current_timestamp_ms
from ..errors import ErrorCode, StorageIOError, StoreClosedError
from ..locks.types import LockManager
from ..metrics.collector import StoreMetrics


logger = logging.getLogger(__name__)


class PartitionStore(SimpleStore[V]):
    """
    Key-value store for one partition with lazy loading and expiry on read.

    Operations issued before the first load completes wait for that same
    load, so within one context operations apply in call order.
    """

    def __init__(self,
                 name: str,
                 database_name: str,
                 backend: StorageBackend,
                 expires_at: ExpirationPolicy,
                 token: CancellationToken,
                 clock: Clock = get_current_timestamp_ms,
                 lock_manager: Optional[LockManager] = None,
                 cleanup_settings: Optional[CleanupSettings] = None,
                 context_id: Optional[str] = None,
                 metrics: Optional[StoreMetrics] = None):
        """
        Initialize a partition store.

        Args:
            name: Partition name
            database_name: Namespace prefix of the record key
            backend: Storage backend holding the record
            expires_at: Expiration policy evaluated on every write
            token: Cancellation signal of the owning database
            clock: Source of the current time in milliseconds
            lock_manager: Named-lock service guarding the expiry sweep
            cleanup_settings: Timing of the expiry sweep
            context_id: Identifier of this execution context on the change channel
            metrics: Collector for store metrics
        """
        self.name = name
        self.storage_key = f"{database_name}:{name}"
        self.context_id = context_id or generate_id("ctx_")
        self._backend = backend
        self._expires_at = expires_at
        self._token = token
        self._clock = clock
        self.metrics = metrics

        self._cache: Optional[Dict[str, Entry]] = None
        self._loading: Optional[asyncio.Future] = None
        self._generation = 0

        self.listener = ChangeListener(
            backend, self.storage_key, self._on_foreign_write, token, context_id=self.context_id
        )
        self.cleanup = CleanupCoordinator(self, token, lock_manager, cleanup_settings)
        token.add_callback(self.invalidate)

    @property
    def closed(self) -> bool:
        """True once the owning database has been disposed."""
        return self._token.cancelled

    @property
    def loaded(self) -> bool:
        """True while an in-memory copy of the record is held."""
        return self._cache is not None

    async def get(self, key: str) -> Optional[V]:
        """
        Retrieve a value.

        An expired entry is removed (and the record persisted) instead of
        being returned.

        Raises:
            StoreClosedError: If the database has been disposed
        """
        self._record_operation("get")
        entries = await self._read()
        entry = entries.get(key)

        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del entries[key]
            if self.metrics is not None:
                self.metrics.record_expired(self.storage_key, 1, "read")
            await self._persist(entries)
            return None

        return entry.value

    async def set(self, key: str, value: V) -> None:
        """
        Store a value; its expiry is computed once, now.

        Raises:
            StoreClosedError: If the database has been disposed
            TypeError: If the value cannot be encoded as JSON
        """
        self._record_operation("set")
        entries = await self._read()
        entry = Entry(value=value, expires_at=self._expires_at(value))
        json.dumps(entry.to_dict())

        entries[key] = entry
        await self._persist(entries)

    async def delete(self, key: str) -> None:
        """
        Remove a key; nothing is written if it was not present.

        Raises:
            StoreClosedError: If the database has been disposed
        """
        self._record_operation("delete")
        entries = await self._read()
        if key in entries:
            del entries[key]
            await self._persist(entries)

    async def keys(self) -> List[str]:
        """
        List stored keys.

        Expired entries not yet swept are included; pair with get() when
        freshness matters.

        Raises:
            StoreClosedError: If the database has been disposed
        """
        self._record_operation("keys")
        entries = await self._read()
        return list(entries)

    async def sweep_expired(self) -> int:
        """
        Remove every expired entry, persisting once if any were removed.

        Returns:
            Number of entries removed

        Raises:
            StoreClosedError: If the database has been disposed
            StorageIOError: If the record cannot be read or written
        """
        entries = await self._read(strict=True)
        now = self._clock()

        expired = [key for key, entry in entries.items() if entry.is_expired(now)]
        for key in expired:
            del entries[key]

        if expired:
            if self.metrics is not None:
                self.metrics.record_expired(self.storage_key, len(expired), "sweep")
            await self._persist(entries, strict=True)

        return len(expired)

    def invalidate(self) -> None:
        """Discard the in-memory record so the next operation reloads it."""
        self._cache = None
        self._generation += 1

    def _on_foreign_write(self) -> None:
        if self.metrics is not None:
            self.metrics.record_invalidation(self.storage_key)
        self.invalidate()

    def _record_operation(self, operation: str) -> None:
        if self.metrics is not None:
            self.metrics.record_operation(self.storage_key, operation)

    def _record_backend_call(self, operation: str, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_backend_call(self.storage_key, operation, status)

    def _timed(self, operation: str) -> ContextManager[None]:
        if self.metrics is None:
            return nullcontext()
        return self.metrics.time_backend_call(operation)

    def _ensure_open(self) -> None:
        if self._token.cancelled:
            raise StoreClosedError(self.storage_key)

    async def _read(self, strict: bool = False) -> Dict[str, Entry]:
        """Return the cached record, loading it first if needed."""
        self._ensure_open()
        self.cleanup.schedule()

        if self._cache is not None:
            return self._cache

        loading = self._loading
        if loading is None:
            loading = asyncio.ensure_future(self._load())
            loading.add_done_callback(self._loading_done)
            self._loading = loading

        try:
            entries = await self._wait_for_load(loading)
        except StorageIOError as e:
            if strict:
                raise
            logger.error(f"Error reading {self.storage_key}: {e}")
            entries = {}

        self._ensure_open()
        return entries

    async def _wait_for_load(self, loading: asyncio.Future) -> Dict[str, Entry]:
        """Wait for the shared load, giving up as soon as the database is disposed."""
        closed = asyncio.get_running_loop().create_future()

        def on_cancel() -> None:
            if not closed.done():
                closed.set_result(None)

        self._token.add_callback(on_cancel)
        try:
            await asyncio.wait({loading, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            self._token.remove_callback(on_cancel)

        self._ensure_open()
        return loading.result()

    async def _load(self) -> Dict[str, Entry]:
        generation = self._generation
        try:
            with self._timed("load"):
                raw = await self._backend.get(self.storage_key)
            self._ensure_open()
            entries = self._decode(raw)
        except StorageIOError:
            self._record_backend_call("load", "error")
            raise
        self._record_backend_call("load", "ok")

        if generation == self._generation:
            self._cache = entries
            logger.debug(f"Loaded {len(entries)} entries from {self.storage_key}")
        return entries

    def _loading_done(self, future: asyncio.Future) -> None:
        if self._loading is future:
            self._loading = None
        if not future.cancelled():
            # Mark the exception as retrieved even if every waiter went away
            future.exception()

    async def _persist(self, entries: Dict[str, Entry], strict: bool = False) -> None:
        """Write the whole record back to the backend."""
        self._ensure_open()
        payload = self._encode(entries)

        try:
            with self._timed("persist"):
                await self._backend.set(self.storage_key, payload, origin=self.context_id)
        except StorageIOError as e:
            self._record_backend_call("persist", "error")
            if strict:
                raise
            logger.error(f"Error persisting {self.storage_key}: {e}")
        else:
            self._record_backend_call("persist", "ok")

    def _encode(self, entries: Dict[str, Entry]) -> str:
        return json.dumps({key: entry.to_dict() for key, entry in entries.items()})

    def _decode(self, raw: object) -> Dict[str, Entry]:
        if raw is None:
            return {}

        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode("utf-8")
            data = json.loads(raw) if isinstance(raw, str) else raw
            if not isinstance(data, dict):
                raise ValueError(f"record is a {type(data).__name__}, not a mapping")
            return {key: Entry.from_dict(item) for key, item in data.items()}
        except (ValueError, TypeError, AttributeError) as e:
            raise StorageIOError(
                "decode", self.storage_key, cause=e, code=ErrorCode.SERIALIZATION_FAILED
            ) from e
