# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Value types stored by the OAuth database.

Values are kept as plain JSON-compatible mappings; these TypedDicts describe
their shape. The protocol layer that produces them lives outside this package.
"""

from typing import Any, Dict, Optional, TypedDict

from ..common.utils import Clock, minutes_to_ms
from ..store.types import ExpirationPolicy, fixed_ttl

PENDING_STATE_TTL_MS = minutes_to_ms(10)
DPOP_NONCE_TTL_MS = minutes_to_ms(10)


class TokenInfo(TypedDict, total=False):
    """Token set returned by the authorization server."""
    type: str
    scope: str
    access: str
    refresh: Optional[str]
    expires_at: Optional[int]


class SessionInfo(TypedDict, total=False):
    """Identity of the account a session belongs to."""
    sub: str
    aud: str
    server: Dict[str, Any]


class Session(TypedDict, total=False):
    """Long-lived session record, keyed by account identifier."""
    dpopKey: Dict[str, Any]
    info: SessionInfo
    token: TokenInfo


class PendingState(TypedDict, total=False):
    """Context of an authorization request waiting for its callback."""
    dpopKey: Dict[str, Any]
    metadata: Dict[str, Any]
    verifier: str


def session_expires_at(session: Session) -> Optional[int]:
    """
    Expiration policy for sessions.

    A session holding a refresh token never expires on its own; otherwise
    it expires with its access token (or never, if the token has no expiry).
    """
    token = session.get("token") or {}
    if token.get("refresh"):
        return None
    return token.get("expires_at")


def pending_state_policy(clock: Clock) -> ExpirationPolicy:
    """Pending authorization states live for ten minutes."""
    return fixed_ttl(PENDING_STATE_TTL_MS, clock)


def dpop_nonce_policy(clock: Clock) -> ExpirationPolicy:
    """DPoP nonces live for ten minutes."""
    return fixed_ttl(DPOP_NONCE_TTL_MS, clock)
