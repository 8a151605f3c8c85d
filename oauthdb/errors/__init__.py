# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Structured error handling for the OAuth client store.

Errors carry an ErrorCode, a source and an optional cause so that callers and
log handlers can tell a closed store apart from a flaky storage backend.

Recovery policy:
  - BackendUnavailableError: fatal, raised while building a backend or database.
  - StorageIOError: raised by backend adapters. Ordinary reads and writes
    recover from it locally (logged, the operation behaves as if the record
    were empty or the write was dropped). This trades durability for
    availability.
  - ContextInvalidatedError: the host storage is permanently gone.
  - StoreClosedError: an operation reached a disposed database. Always
    surfaced to the caller.
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any, Optional


class ErrorCode(Enum):
    """Structured error codes for store operations."""

    STORE_CLOSED = "store_closed"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    STORAGE_IO = "storage_io"
    CONTEXT_INVALIDATED = "context_invalidated"
    SERIALIZATION_FAILED = "serialization_failed"
    LOCK_FAILED = "lock_failed"
    NOT_CONFIGURED = "not_configured"
    INVALID_CONFIGURATION = "invalid_configuration"


class ErrorSource(Enum):
    """Components where errors can originate."""

    STORE = "store"
    BACKEND = "backend"
    LOCK = "lock"
    CONFIGURATION = "configuration"


class OAuthStoreError(Exception):
    """
    Base exception class for all store errors.

    Provides the error code, the component that raised it and the
    underlying exception, if any.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        source: ErrorSource = ErrorSource.STORE,
        cause: Optional[BaseException] = None,
    ):
        self.code = code
        self.message = message
        self.source = source
        self.cause = cause
        self.timestamp = datetime.now()

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
            "error_source": self.source.value,
            "timestamp": self.timestamp.isoformat(),
        }

        if self.cause:
            result["caused_by"] = str(self.cause)

        return result

    def is_retryable(self) -> bool:
        """Check if this error might be resolved by retrying."""
        return self.code in [
            ErrorCode.STORAGE_IO,
            ErrorCode.LOCK_FAILED,
        ]


class StoreClosedError(OAuthStoreError):
    """Raised when a store is used after its database has been disposed."""

    def __init__(self, store_name: str = "", message: str = ""):
        self.store_name = store_name
        if not message:
            message = f"store closed: {store_name}" if store_name else "store closed"
        super().__init__(
            code=ErrorCode.STORE_CLOSED,
            message=message,
            source=ErrorSource.STORE,
        )


class BackendUnavailableError(OAuthStoreError):
    """Raised when no usable storage backend can be found."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(
            code=ErrorCode.BACKEND_UNAVAILABLE,
            message=message,
            source=ErrorSource.BACKEND,
            cause=cause,
        )


class StorageIOError(OAuthStoreError):
    """A single load or persist call against the backend failed."""

    def __init__(self, operation: str, key: str = "", message: str = "",
                 cause: Optional[BaseException] = None,
                 code: ErrorCode = ErrorCode.STORAGE_IO):
        self.operation = operation
        self.key = key
        super().__init__(
            code=code,
            message=f"Storage error in {operation} of {key!r}: {message or cause}",
            source=ErrorSource.BACKEND,
            cause=cause,
        )


class ContextInvalidatedError(StorageIOError):
    """The host storage facility was torn down and will not come back."""

    def __init__(self, operation: str, key: str = "", message: str = "storage context invalidated",
                 cause: Optional[BaseException] = None):
        super().__init__(
            operation=operation,
            key=key,
            message=message,
            cause=cause,
            code=ErrorCode.CONTEXT_INVALIDATED,
        )


class LockError(OAuthStoreError):
    """The named-lock service failed (not raised for a lock that is simply busy)."""

    def __init__(self, name: str, message: str, cause: Optional[BaseException] = None):
        self.name = name
        super().__init__(
            code=ErrorCode.LOCK_FAILED,
            message=f"Lock {name!r}: {message}",
            source=ErrorSource.LOCK,
            cause=cause,
        )


class ConfigurationError(OAuthStoreError):
    """Invalid configuration, or process-wide state used before it was configured."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_CONFIGURATION,
                 field: Optional[str] = None):
        self.field = field
        super().__init__(
            code=code,
            message=message,
            source=ErrorSource.CONFIGURATION,
        )


__all__ = [
    "ErrorCode",
    "ErrorSource",
    "OAuthStoreError",
    "StoreClosedError",
    "BackendUnavailableError",
    "StorageIOError",
    "ContextInvalidatedError",
    "LockError",
    "ConfigurationError",
]
