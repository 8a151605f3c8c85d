# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Factory for creating storage backends.

The surrounding application picks the backend once, at startup, from
configuration; the library never guesses which storage facility exists.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from .types import StorageBackend
from .memory import MemoryStorageBackend
from .file import FileStorageBackend
from .distributed import RedisStorageBackend, DEFAULT_CHANGE_CHANNEL
from ..errors import BackendUnavailableError
from ..util.config import get_config_value


@dataclass
class BackendConfig:
    """Configuration for storage backends."""
    backend_type: str = "memory"
    url: Optional[str] = None
    directory: Optional[str] = None
    channel: str = DEFAULT_CHANGE_CHANNEL
    # Redis drops a cleanup lock after lock_timeout; it must exceed the
    # database cleanup_delay, which OAuthDatabase checks at construction
    lock_timeout: timedelta = field(default_factory=lambda: timedelta(seconds=30))

    @classmethod
    def from_env(cls) -> "BackendConfig":
        """Create configuration from OAUTHDB_* environment variables"""
        return cls(
            backend_type=get_config_value("backend", "memory"),
            url=get_config_value("redis_url"),
            directory=get_config_value("storage_dir"),
            channel=get_config_value("change_channel", DEFAULT_CHANGE_CHANNEL),
            lock_timeout=get_config_value("lock_timeout", timedelta(seconds=30), timedelta),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'backend_type': self.backend_type,
            'url': self.url,
            'directory': self.directory,
            'channel': self.channel,
            'lock_timeout': self.lock_timeout.total_seconds(),
        }


def _create_memory(config: BackendConfig) -> StorageBackend:
    return MemoryStorageBackend()


def _create_file(config: BackendConfig) -> StorageBackend:
    if not config.directory:
        raise BackendUnavailableError("File backend needs a storage directory")
    try:
        return FileStorageBackend(config.directory)
    except OSError as e:
        raise BackendUnavailableError(f"Cannot use storage directory {config.directory!r}", cause=e) from e


def _create_redis(config: BackendConfig) -> StorageBackend:
    if not config.url:
        raise BackendUnavailableError("Redis backend needs a URL")
    return RedisStorageBackend(url=config.url, channel=config.channel)


# Registry of available backend implementations
_BACKEND_FACTORIES: Dict[str, Callable[[BackendConfig], StorageBackend]] = {
    'memory': _create_memory,
    'file': _create_file,
    'redis': _create_redis,
}


def register_backend(name: str, factory: Callable[[BackendConfig], StorageBackend]) -> None:
    """
    Register a new backend type.

    Args:
        name: Name to register the backend under
        factory: Callable building the backend from a BackendConfig
    """
    _BACKEND_FACTORIES[name.lower()] = factory


def get_available_backends() -> list[str]:
    """Get list of available backend types."""
    return list(_BACKEND_FACTORIES.keys())


def create_backend(config: BackendConfig) -> StorageBackend:
    """
    Create a storage backend from configuration.

    Args:
        config: Backend configuration

    Returns:
        StorageBackend instance

    Raises:
        BackendUnavailableError: If the type is unknown or misconfigured
    """
    factory = _BACKEND_FACTORIES.get(config.backend_type.lower())
    if factory is None:
        raise BackendUnavailableError(f"Unsupported storage backend: {config.backend_type}")
    return factory(config)
