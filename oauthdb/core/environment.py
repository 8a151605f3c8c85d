# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Process-wide OAuth client state.

configure_oauth() must run once, before the protocol layer is used. It records
the client identity and builds the database on the storage backend chosen by
the application.
"""

import logging
from dataclasses import replace
from typing import Optional

from .config import DatabaseConfig, OAuthConfig
from .database import OAuthDatabase
from ..backend.types import StorageBackend
from ..errors import ConfigurationError, ErrorCode
from ..locks.types import LockManager
from ..metrics.collector import StoreMetrics


logger = logging.getLogger(__name__)

CLIENT_ID: Optional[str] = None
REDIRECT_URI: Optional[str] = None
database: Optional[OAuthDatabase] = None


def configure_oauth(options: OAuthConfig,
                    backend: StorageBackend,
                    lock_manager: Optional[LockManager] = None,
                    database_config: Optional[DatabaseConfig] = None,
                    metrics: Optional[StoreMetrics] = None) -> OAuthDatabase:
    """
    Configure the OAuth client for this process.

    Args:
        options: Client metadata and optional storage name
        backend: Storage backend for the database
        lock_manager: Named-lock service for cleanup sweeps
        database_config: Cleanup timing; its name is replaced by the
            configured storage name
        metrics: Collector for store metrics

    Returns:
        The new database

    Raises:
        ConfigurationError: If the client metadata is incomplete
        BackendUnavailableError: If no backend is given
    """
    global CLIENT_ID, REDIRECT_URI, database

    options.validate()
    config = replace(database_config or DatabaseConfig(), name=options.database_name)

    new_database = OAuthDatabase(config, backend, lock_manager, metrics=metrics)

    if database is not None:
        database.dispose()

    CLIENT_ID = options.metadata.client_id
    REDIRECT_URI = options.metadata.redirect_uri
    database = new_database

    logger.info(f"Configured OAuth client {CLIENT_ID} with storage {config.name!r}")
    return new_database


def _not_configured(what: str) -> ConfigurationError:
    return ConfigurationError(
        f"{what} is not available; call configure_oauth() first",
        code=ErrorCode.NOT_CONFIGURED,
    )


def get_client_id() -> str:
    """Configured OAuth client id."""
    if CLIENT_ID is None:
        raise _not_configured("client_id")
    return CLIENT_ID


def get_redirect_uri() -> str:
    """Configured OAuth redirect URI."""
    if REDIRECT_URI is None:
        raise _not_configured("redirect_uri")
    return REDIRECT_URI


def get_database() -> OAuthDatabase:
    """Database built by configure_oauth()."""
    if database is None:
        raise _not_configured("database")
    return database


def reset() -> None:
    """Dispose the database and forget the configuration."""
    global CLIENT_ID, REDIRECT_URI, database

    if database is not None:
        database.dispose()

    CLIENT_ID = None
    REDIRECT_URI = None
    database = None
