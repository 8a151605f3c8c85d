"""
oauthdb Python Package

Persistence layer of an OAuth client: TTL-aware partition stores for sessions,
pending authorization states and DPoP nonces, kept coherent across execution
contexts that share one storage backend.
"""

__version__ = "0.1.0"

from .core.database import OAuthDatabase
from .core.config import DatabaseConfig, OAuthConfig, ClientMetadata
from .core.environment import configure_oauth, get_database
from .backend.factory import BackendConfig, create_backend
from .locks.factory import create_lock_manager
from .metrics.collector import StoreMetrics
from .errors import (
    OAuthStoreError,
    StoreClosedError,
    BackendUnavailableError,
    StorageIOError,
)

__all__ = [
    "OAuthDatabase",
    "DatabaseConfig",
    "OAuthConfig",
    "ClientMetadata",
    "configure_oauth",
    "get_database",
    "BackendConfig",
    "create_backend",
    "create_lock_manager",
    "StoreMetrics",
    "OAuthStoreError",
    "StoreClosedError",
    "BackendUnavailableError",
    "StorageIOError",
]
