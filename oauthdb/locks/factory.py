# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Factory pairing a lock service with a storage backend.
"""

import logging
from typing import Optional

from .types import LockManager
from .memory import MemoryLockManager
from .distributed import RedisLockManager
from ..backend.factory import BackendConfig
from ..backend.types import StorageBackend
from ..backend.distributed import RedisStorageBackend


logger = logging.getLogger(__name__)


def create_lock_manager(config: BackendConfig, backend: StorageBackend) -> Optional[LockManager]:
    """
    Create the lock service matching a backend.

    Returns:
        LockManager instance, or None when the backend type has no lock
        service (cleanup sweeps then run unguarded)
    """
    if isinstance(backend, RedisStorageBackend):
        return RedisLockManager(backend.client, timeout=config.lock_timeout.total_seconds())

    if config.backend_type.lower() == "memory":
        return MemoryLockManager()

    logger.info(f"No lock service for backend {config.backend_type!r}; cleanup runs unguarded")
    return None
