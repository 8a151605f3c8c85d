# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
In-memory storage backend.

Several databases sharing one MemoryStorageBackend behave like several
execution contexts sharing host storage: every write is announced to all
subscribers.
"""

import logging
from typing import Any, Dict, List, Optional

from .types import StorageBackend, StorageChange, ChangeCallback, Unsubscribe
from ..errors import ContextInvalidatedError


logger = logging.getLogger(__name__)


class MemoryStorageBackend(StorageBackend):
    """
    Dictionary-backed storage.

    Records are kept as the serialized text handed to set(), so readers
    always decode their own copy.

    Note: All data is lost when the process terminates.
    """

    def __init__(self):
        self._records: Dict[str, Any] = {}
        self._subscribers: List[ChangeCallback] = []
        self._closed = False

    async def get(self, key: str) -> Optional[Any]:
        """Read a record."""
        if self._closed:
            raise ContextInvalidatedError("get", key)
        return self._records.get(key)

    async def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        """Write a record and notify every subscriber."""
        if self._closed:
            raise ContextInvalidatedError("set", key)
        self._records[key] = value
        self._notify(StorageChange(key=key, origin=origin))

    def subscribe(self, callback: ChangeCallback) -> Optional[Unsubscribe]:
        """Register for change notifications."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, change: StorageChange) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Error delivering change of {change.key!r}: {e}")

    @property
    def subscriber_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscribers)

    def snapshot(self) -> Dict[str, Any]:
        """Copy of all records, keyed by record key."""
        return dict(self._records)

    async def close(self) -> None:
        """Tear down the storage; later calls raise ContextInvalidatedError."""
        self._closed = True
        self._subscribers.clear()
        logger.info("Closed memory storage backend")
