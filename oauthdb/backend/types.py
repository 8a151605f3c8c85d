# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Storage backend interface.

A backend is the host's persistent storage facility seen through a uniform
async get/set facade. Records are addressed by string keys and their values
are JSON text produced by the partition stores; a backend may hand back text,
bytes or an already decoded mapping on read.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class StorageChange:
    """Notification that a record was written by some execution context."""

    key: str
    origin: Optional[str] = None


ChangeCallback = Callable[[StorageChange], None]
Unsubscribe = Callable[[], None]


class StorageBackend(ABC):
    """Abstract base class for storage backends."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read a record.

        Args:
            key: Record key

        Returns:
            The stored value, or None if the record does not exist

        Raises:
            StorageIOError: If the read fails
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        """
        Write a record and announce the change to subscribers.

        Args:
            key: Record key
            value: Serialized record
            origin: Identifier of the writing context, passed through to
                the StorageChange

        Raises:
            StorageIOError: If the write fails
        """
        pass

    def subscribe(self, callback: ChangeCallback) -> Optional[Unsubscribe]:
        """
        Register for change notifications.

        Returns:
            A function removing the subscription, or None if this backend
            has no change channel
        """
        return None

    async def close(self) -> None:
        """Release connections held by the backend."""
        pass
