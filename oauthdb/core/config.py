# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Configuration module for the OAuth client store.
"""

from datetime import timedelta
from typing import Optional
from dataclasses import dataclass, field

from ..errors import ConfigurationError
from ..store.cleanup import CleanupSettings
from ..util.config import get_config_value

DEFAULT_STORAGE_NAME = "atcute-oauth"


@dataclass
class DatabaseConfig:
    """Configuration of one OAuth database"""
    name: str = DEFAULT_STORAGE_NAME
    cleanup_delay: timedelta = field(default_factory=lambda: timedelta(seconds=10))
    cleanup_interval: timedelta = field(default_factory=lambda: timedelta(seconds=10))
    recurring_cleanup: bool = True
    auto_cleanup: bool = True

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Create configuration from OAUTHDB_* environment variables"""
        return cls(
            name=get_config_value("storage_name", DEFAULT_STORAGE_NAME),
            cleanup_delay=get_config_value("cleanup_delay", timedelta(seconds=10), timedelta),
            cleanup_interval=get_config_value("cleanup_interval", timedelta(seconds=10), timedelta),
            recurring_cleanup=get_config_value("recurring_cleanup", True, bool),
            auto_cleanup=get_config_value("auto_cleanup", True, bool),
        )

    def cleanup_settings(self) -> CleanupSettings:
        """Cleanup timing for the partitions of this database"""
        return CleanupSettings(
            delay=self.cleanup_delay.total_seconds(),
            interval=self.cleanup_interval.total_seconds(),
            recurring=self.recurring_cleanup,
            enabled=self.auto_cleanup,
        )

    def validate(self, lock_lease: Optional[float] = None) -> bool:
        """
        Validate the configuration.

        Args:
            lock_lease: Seconds the lock service keeps a cleanup lock before
                dropping it; the lock is held through cleanup_delay and the
                sweep, so the lease must outlast the delay
        """
        if not self.name:
            raise ConfigurationError("name is required", field="name")
        if self.cleanup_delay < timedelta(0):
            raise ConfigurationError("cleanup_delay must not be negative", field="cleanup_delay")
        if self.cleanup_interval <= timedelta(0):
            raise ConfigurationError("cleanup_interval must be positive", field="cleanup_interval")
        if lock_lease is not None and timedelta(seconds=lock_lease) <= self.cleanup_delay:
            raise ConfigurationError(
                f"lock timeout ({lock_lease}s) must exceed cleanup_delay "
                f"({self.cleanup_delay.total_seconds()}s)",
                field="cleanup_delay",
            )
        return True


@dataclass
class ClientMetadata:
    """OAuth client identity"""
    client_id: str
    redirect_uri: str


@dataclass
class OAuthConfig:
    """Process-wide OAuth client configuration"""
    metadata: ClientMetadata
    storage_name: Optional[str] = None

    @property
    def database_name(self) -> str:
        """Namespace prefix for all persisted record keys"""
        return self.storage_name or DEFAULT_STORAGE_NAME

    @classmethod
    def from_env(cls) -> "OAuthConfig":
        """Create configuration from OAUTHDB_* environment variables"""
        return cls(
            metadata=ClientMetadata(
                client_id=get_config_value("client_id", ""),
                redirect_uri=get_config_value("redirect_uri", ""),
            ),
            storage_name=get_config_value("storage_name"),
        )

    def validate(self) -> bool:
        """Validate the configuration"""
        if not self.metadata.client_id:
            raise ConfigurationError("metadata.client_id is required", field="client_id")
        if not self.metadata.redirect_uri:
            raise ConfigurationError("metadata.redirect_uri is required", field="redirect_uri")
        return True
