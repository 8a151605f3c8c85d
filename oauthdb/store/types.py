# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Storage types for partition stores.
Defines the persisted entry format and the store interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from ..common.utils import Clock

V = TypeVar("V")

ExpirationPolicy = Callable[[Any], Optional[int]]
"""Maps a value to its expiry timestamp (ms since epoch), or None for no expiry."""


@dataclass
class Entry:
    """A stored value plus the expiry computed when it was written."""
    value: Any
    expires_at: Optional[int] = None

    def is_expired(self, now: int) -> bool:
        """Check if the entry has expired at the given time."""
        return self.expires_at is not None and self.expires_at <= now

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted representation."""
        return {
            'value': self.value,
            'expiresAt': self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Entry':
        """Create from the persisted representation."""
        return cls(
            value=data.get('value'),
            expires_at=data.get('expiresAt'),
        )


class SimpleStore(ABC, Generic[V]):
    """Async key-value interface exposed by each partition."""

    @abstractmethod
    async def get(self, key: str) -> Optional[V]:
        """Return the value for key, or None if missing or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: V) -> None:
        """Store value under key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key if present."""
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        """List stored keys, including expired entries not yet swept."""
        pass


def fixed_ttl(ttl_ms: int, clock: Clock) -> ExpirationPolicy:
    """
    Build a policy expiring every value a fixed time after it is written.

    Args:
        ttl_ms: Time to live in milliseconds
        clock: Source of the current time
    """
    def policy(_value: Any) -> Optional[int]:
        return clock() + ttl_ms

    return policy


def never_expires(_value: Any) -> Optional[int]:
    """Policy for values that are only removed explicitly."""
    return None
