# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
In-process lock service for contexts that share one event loop.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Set

from .types import LockManager


class MemoryLockManager(LockManager):
    """Named locks held in a set; share one instance between databases."""

    def __init__(self):
        self._held: Set[str] = set()

    @asynccontextmanager
    async def acquire(self, name: str) -> AsyncIterator[bool]:
        """Try to take the named lock without waiting."""
        if name in self._held:
            yield False
            return

        self._held.add(name)
        try:
            yield True
        finally:
            self._held.discard(name)

    def is_held(self, name: str) -> bool:
        """Check whether the named lock is currently taken."""
        return name in self._held
