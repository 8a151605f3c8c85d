# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
File-based storage backend.

Each record is a JSON text file in a directory, so several processes on one
host can share it. Writes go to a temporary file first and are then moved
over the record, so readers never see a half-written record.
"""

import logging
import uuid
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

import aiofiles
import aiofiles.os

from .types import StorageBackend, StorageChange, ChangeCallback, Unsubscribe
from ..errors import StorageIOError


logger = logging.getLogger(__name__)


class FileStorageBackend(StorageBackend):
    """Flat text storage with one file per record."""

    def __init__(self, storage_dir: str = "./oauth-storage"):
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._subscribers: List[ChangeCallback] = []

    def _get_record_path(self, key: str) -> Path:
        """Get the file path for a record key."""
        return self.storage_dir / f"{quote(key, safe='')}.json"

    async def get(self, key: str) -> Optional[str]:
        """Read a record file."""
        path = self._get_record_path(key)

        try:
            async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                return await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageIOError("get", key, cause=e) from e

    async def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        """Write a record file and notify subscribers of this instance."""
        path = self._get_record_path(key)
        tmp_path = path.with_name(f"{path.name}.{uuid.uuid4().hex}.tmp")

        try:
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(value)
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            await self._discard(tmp_path)
            raise StorageIOError("set", key, cause=e) from e

        change = StorageChange(key=key, origin=origin)
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Error delivering change of {key!r}: {e}")

    async def _discard(self, tmp_path: Path) -> None:
        """Remove a temporary file left by a failed write."""
        try:
            await aiofiles.os.remove(tmp_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove temporary file {tmp_path}: {e}")

    def subscribe(self, callback: ChangeCallback) -> Optional[Unsubscribe]:
        """
        Register for change notifications.

        Only writes made through this instance are announced; writes by
        other processes are picked up when the cache next reloads.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
