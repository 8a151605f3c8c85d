# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Cooperative cancellation shared by every component of a database.

A single CancellationToken is created per database and handed to each
partition, listener and cleanup coordinator. Nothing is torn down
forcibly: each suspension point checks the token when it resumes.
"""

import asyncio
import logging
from typing import Callable, List, Optional


logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation signal with callbacks and a cancellable sleep."""

    def __init__(self, name: str = ""):
        self.name = name
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Trigger the signal. Calling it again has no effect."""
        if self._cancelled:
            return
        self._cancelled = True

        if self._event is not None:
            self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in cancellation callback for {self.name!r}: {e}")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """
        Register a callback to run on cancellation.

        Runs the callback immediately if the token is already cancelled.
        """
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        """Forget a callback registered with add_callback()."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def sleep(self, seconds: float) -> bool:
        """
        Wait for the given number of seconds unless cancelled first.

        Returns:
            True if the full delay elapsed, False if the token was cancelled
        """
        if self._cancelled:
            return False

        if self._event is None:
            self._event = asyncio.Event()

        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return not self._cancelled
        return False
