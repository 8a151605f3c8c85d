# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package backend provides the storage backend interface and its adapters:
- Memory storage shared by contexts in one process
- File storage shared by processes on one host
- Redis storage shared by any number of hosts
- A factory resolving the backend from configuration
"""

from .types import (
    StorageBackend,
    StorageChange,
    ChangeCallback,
    Unsubscribe,
)

from .memory import MemoryStorageBackend
from .file import FileStorageBackend
from .distributed import RedisStorageBackend, DEFAULT_CHANGE_CHANNEL

from .factory import (
    BackendConfig,
    create_backend,
    register_backend,
    get_available_backends,
)

__all__ = [
    'StorageBackend',
    'StorageChange',
    'ChangeCallback',
    'Unsubscribe',

    'MemoryStorageBackend',
    'FileStorageBackend',
    'RedisStorageBackend',
    'DEFAULT_CHANGE_CHANNEL',

    'BackendConfig',
    'create_backend',
    'register_backend',
    'get_available_backends',
]
