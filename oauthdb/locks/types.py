# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Named advisory lock interface.

Locks here only keep execution contexts from doing the same maintenance work
twice; they never guard ordinary reads and writes. Acquisition never waits:
if someone else holds the lock the caller is told so and moves on.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager, Optional


class LockManager(ABC):
    """Abstract base class for named-lock services."""

    @property
    def lease(self) -> Optional[float]:
        """
        Seconds after which a held lock is dropped by the service, or None
        if it is held until released.
        """
        return None

    @abstractmethod
    def acquire(self, name: str) -> AsyncContextManager[bool]:
        """
        Try to take the named lock without waiting.

        Usage:
            async with manager.acquire("key:cleanup") as acquired:
                if acquired:
                    ...

        The context manager yields True if the lock was obtained and
        releases it on exit, or yields False if another holder has it.

        Raises:
            LockError: If the lock service itself fails
        """
        pass
