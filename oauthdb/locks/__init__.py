# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package locks provides the named advisory lock service used to keep
execution contexts from sweeping the same partition at the same time.
"""

from .types import LockManager
from .memory import MemoryLockManager
from .distributed import RedisLockManager
from .factory import create_lock_manager

__all__ = [
    'LockManager',
    'MemoryLockManager',
    'RedisLockManager',
    'create_lock_manager',
]
