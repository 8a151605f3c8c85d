# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Core of the OAuth client store: the database facade, its configuration and
the process-wide client state.
"""

from .config import (
    DEFAULT_STORAGE_NAME,
    DatabaseConfig,
    ClientMetadata,
    OAuthConfig,
)

from .types import (
    TokenInfo,
    SessionInfo,
    Session,
    PendingState,
    PENDING_STATE_TTL_MS,
    DPOP_NONCE_TTL_MS,
    session_expires_at,
    pending_state_policy,
    dpop_nonce_policy,
)

from .database import OAuthDatabase

from .environment import (
    configure_oauth,
    get_client_id,
    get_redirect_uri,
    get_database,
    reset,
)

__all__ = [
    "DEFAULT_STORAGE_NAME",
    "DatabaseConfig",
    "ClientMetadata",
    "OAuthConfig",

    "TokenInfo",
    "SessionInfo",
    "Session",
    "PendingState",
    "PENDING_STATE_TTL_MS",
    "DPOP_NONCE_TTL_MS",
    "session_expires_at",
    "pending_state_policy",
    "dpop_nonce_policy",

    "OAuthDatabase",

    "configure_oauth",
    "get_client_id",
    "get_redirect_uri",
    "get_database",
    "reset",
]
