# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Redis-based distributed storage backend.

Records are plain Redis strings. Every write also publishes a small JSON
message on a change channel, so each execution context connected to the same
Redis learns which record changed and who changed it.
"""

import asyncio
import json
import logging
from typing import Any, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from .types import StorageBackend, StorageChange, ChangeCallback, Unsubscribe
from ..errors import BackendUnavailableError, StorageIOError


logger = logging.getLogger(__name__)

DEFAULT_CHANGE_CHANNEL = "oauthdb:changes"


class RedisStorageBackend(StorageBackend):
    """
    Redis storage with a pub/sub change channel.

    The pub/sub reader is started by the first get() or set() after a
    subscription exists, because it needs a running event loop.
    """

    def __init__(self,
                 redis_client: Optional[Any] = None,
                 url: Optional[str] = None,
                 channel: str = DEFAULT_CHANGE_CHANNEL):
        """
        Initialize the Redis backend.

        Args:
            redis_client: Existing redis.asyncio client; takes precedence over url
            url: Redis URL used to create a client owned by this backend
            channel: Pub/sub channel carrying change notifications
        """
        self._owns_client = redis_client is None
        if redis_client is None:
            if not url:
                raise BackendUnavailableError("Redis backend needs a client or a URL")
            redis_client = redis.from_url(
                url,
                encoding="utf-8",
                decode_responses=True,
            )

        self._redis = redis_client
        self.channel = channel
        self._subscribers: List[ChangeCallback] = []
        self._pubsub: Optional[Any] = None
        self._listener_task: Optional[asyncio.Task] = None
        self._listen_lock: Optional[asyncio.Lock] = None

    @property
    def client(self) -> Any:
        """The underlying redis.asyncio client."""
        return self._redis

    async def get(self, key: str) -> Optional[Any]:
        """Read a record."""
        await self._ensure_listening()

        try:
            return await self._redis.get(key)
        except RedisError as e:
            raise StorageIOError("get", key, cause=e) from e

    async def set(self, key: str, value: str, origin: Optional[str] = None) -> None:
        """Write a record and publish the change in the same round trip."""
        await self._ensure_listening()
        message = json.dumps({"key": key, "origin": origin})

        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.set(key, value)
            pipe.publish(self.channel, message)
            await pipe.execute()
        except RedisError as e:
            raise StorageIOError("set", key, cause=e) from e

    def subscribe(self, callback: ChangeCallback) -> Optional[Unsubscribe]:
        """Register for change notifications published by any context."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def _ensure_listening(self) -> None:
        """Start the pub/sub reader once someone is subscribed."""
        if not self._subscribers or self._listener_task is not None:
            return

        if self._listen_lock is None:
            self._listen_lock = asyncio.Lock()

        async with self._listen_lock:
            if not self._subscribers or self._listener_task is not None:
                return

            pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
            try:
                await pubsub.subscribe(self.channel)
            except RedisError as e:
                logger.error(f"Failed to subscribe to change channel {self.channel!r}: {e}")
                await self._close_pubsub(pubsub)
                return

            self._pubsub = pubsub
            self._listener_task = asyncio.create_task(self._listen(pubsub))
            logger.debug(f"Listening for changes on {self.channel!r}")

    async def _listen(self, pubsub: Any) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                self._dispatch(message.get("data"))
        except RedisError as e:
            logger.error(f"Change channel {self.channel!r} failed: {e}")
            self._listener_task = None
            self._pubsub = None
            await self._close_pubsub(pubsub)

    async def _close_pubsub(self, pubsub: Any) -> None:
        try:
            await pubsub.aclose()
        except RedisError as e:
            logger.warning(f"Error closing change channel {self.channel!r}: {e}")

    def _dispatch(self, data: Any) -> None:
        """Decode a change message and hand it to every subscriber."""
        try:
            payload = json.loads(data)
            change = StorageChange(key=payload["key"], origin=payload.get("origin"))
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(f"Ignoring malformed change message {data!r}: {e}")
            return

        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Error delivering change of {change.key!r}: {e}")

    async def close(self) -> None:
        """Stop the change reader and close the connection if this backend owns it."""
        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None

        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self.channel)
                await self._pubsub.aclose()
            except RedisError as e:
                logger.warning(f"Error closing change channel {self.channel!r}: {e}")
            self._pubsub = None

        if self._owns_client:
            await self._redis.aclose()
            logger.info("Disconnected from Redis")
