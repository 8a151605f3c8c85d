# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Redis-based lock service for contexts spread over processes or hosts.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from redis.exceptions import LockError as RedisLockError
from redis.exceptions import RedisError

from .types import LockManager
from ..errors import LockError


logger = logging.getLogger(__name__)


class RedisLockManager(LockManager):
    """
    Named locks backed by redis.asyncio locks.

    Every lock carries a timeout so a holder that dies mid-sweep cannot
    keep other contexts out forever.
    """

    def __init__(self, redis_client: Any, timeout: float = 30.0):
        """
        Initialize the lock service.

        Args:
            redis_client: redis.asyncio client
            timeout: Seconds after which Redis drops an unreleased lock
        """
        self._redis = redis_client
        self._timeout = timeout

    @property
    def lease(self) -> Optional[float]:
        """Seconds after which Redis drops an unreleased lock."""
        return self._timeout

    @asynccontextmanager
    async def acquire(self, name: str) -> AsyncIterator[bool]:
        """Try to take the named lock without waiting."""
        lock = self._redis.lock(name, timeout=self._timeout, blocking=False)

        try:
            acquired = bool(await lock.acquire())
        except RedisError as e:
            raise LockError(name, "acquire failed", cause=e) from e

        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await lock.release()
                except RedisLockError as e:
                    logger.warning(f"Lock {name!r} expired before release: {e}")
                except RedisError as e:
                    logger.warning(f"Failed to release lock {name!r}: {e}")
