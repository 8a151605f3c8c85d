# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package store provides the TTL-aware partition stores and the components
that keep them coherent:
- Partition stores with lazy loading and expiry on read
- Change listeners invalidating caches on foreign writes
- Cleanup coordinators sweeping expired entries under a named lock
"""

from .types import (
    Entry,
    ExpirationPolicy,
    SimpleStore,
    fixed_ttl,
    never_expires,
)

from .listener import ChangeListener

from .cleanup import (
    CleanupCoordinator,
    CleanupOutcome,
    CleanupResult,
    CleanupSettings,
)

from .partition import PartitionStore

__all__ = [
    'Entry',
    'ExpirationPolicy',
    'SimpleStore',
    'fixed_ttl',
    'never_expires',

    'ChangeListener',

    'CleanupCoordinator',
    'CleanupOutcome',
    'CleanupResult',
    'CleanupSettings',

    'PartitionStore',
]
