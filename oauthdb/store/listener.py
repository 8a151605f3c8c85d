# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Cross-context cache invalidation.
"""

import logging
from typing import Callable, Optional

from ..backend.types import StorageBackend, StorageChange, Unsubscribe
from ..common.cancellation import CancellationToken


logger = logging.getLogger(__name__)


class ChangeListener:
    """
    Watches a backend's change channel for writes to one record.

    When another execution context writes the record, the owning partition's
    cache is discarded as a whole (never merged) so the next operation reads
    the record again. Changes carrying this context's own id are ignored.
    """

    def __init__(self,
                 backend: StorageBackend,
                 storage_key: str,
                 on_change: Callable[[], None],
                 token: CancellationToken,
                 context_id: Optional[str] = None):
        self.storage_key = storage_key
        self.context_id = context_id
        self._on_change = on_change
        self._unsubscribe: Optional[Unsubscribe] = None

        if token.cancelled:
            return

        self._unsubscribe = backend.subscribe(self._handle)
        if self._unsubscribe is None:
            logger.debug(f"Backend has no change channel; {storage_key} may serve stale data")
            return

        token.add_callback(self.close)

    @property
    def active(self) -> bool:
        """True while subscribed to the change channel."""
        return self._unsubscribe is not None

    def _handle(self, change: StorageChange) -> None:
        if change.key != self.storage_key:
            return
        if self.context_id is not None and change.origin == self.context_id:
            return

        logger.debug(f"Foreign write to {self.storage_key}; dropping cached record")
        self._on_change()

    def close(self) -> None:
        """Remove the subscription."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
