"""
Shared fixtures for oauthdb tests.
"""

import asyncio
from typing import Any, List, Optional, Tuple

import pytest

from oauthdb.backend.memory import MemoryStorageBackend
from oauthdb.backend.types import StorageBackend
from oauthdb.core.config import DatabaseConfig
from oauthdb.errors import StorageIOError
from oauthdb.locks.memory import MemoryLockManager

START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced millisecond clock"""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingBackend(MemoryStorageBackend):
    """Memory backend that records every get and set"""

    def __init__(self):
        super().__init__()
        self.gets: List[str] = []
        self.sets: List[Tuple[str, str, Optional[str]]] = []

    async def get(self, key: str) -> Optional[Any]:
        self.gets.append(key)
        return await super().get(key)

    async def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        self.sets.append((key, value, origin))
        await super().set(key, value, origin)

    def sets_for(self, key: str) -> List[str]:
        return [value for k, value, _ in self.sets if k == key]


class FailingBackend(StorageBackend):
    """Backend whose reads and writes can be made to fail"""

    def __init__(self, fail_get: bool = True, fail_set: bool = True):
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.records = {}
        self.get_calls = 0

    async def get(self, key: str) -> Optional[Any]:
        self.get_calls += 1
        if self.fail_get:
            raise StorageIOError("get", key, message="quota exceeded")
        return self.records.get(key)

    async def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        if self.fail_set:
            raise StorageIOError("set", key, message="quota exceeded")
        self.records[key] = value


class GatedBackend(MemoryStorageBackend):
    """Memory backend whose reads block until released"""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def get(self, key: str) -> Optional[Any]:
        self.started.set()
        await self.release.wait()
        return await super().get(key)


@pytest.fixture
def clock():
    """Simulated clock"""
    return FakeClock()


@pytest.fixture
def backend():
    """Recording in-memory backend"""
    return RecordingBackend()


@pytest.fixture
def lock_manager():
    """In-process lock service"""
    return MemoryLockManager()


@pytest.fixture
def db_config():
    """Database configuration without background cleanup"""
    return DatabaseConfig(name="test-oauth", auto_cleanup=False)
