"""
Registry of open WebSocket connections keyed by resolved URL.
"""

import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from .models import ConnectionEntry, StreamIdentity, StreamType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    Authoritative registry of open socket connections.

    Receive loops, timer callbacks and foreground calls all touch the
    registry, so every operation is a single critical section under one
    lock and never awaits. Entries handed out are copies.
    """

    def __init__(self):
        self._entries: Dict[str, ConnectionEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def contains(self, url: str) -> bool:
        with self._lock:
            return url in self._entries

    def try_register(self, url: str, identity: StreamIdentity) -> bool:
        """
        Insert an entry for ``url`` unless one already exists.

        Returns:
            True if inserted, False if the URL was already registered
        """
        with self._lock:
            if url in self._entries:
                return False
            self._entries[url] = ConnectionEntry(identity=identity, url=url, opened_at=datetime.utcnow())

        logger.debug("Connection registered", url=url, stream=identity.stream_type.value)
        return True

    def unregister(self, url: str) -> Optional[ConnectionEntry]:
        """
        Remove the entry for ``url``.

        Returns:
            The removed entry, or None if there was none
        """
        with self._lock:
            entry = self._entries.pop(url, None)

        if entry is not None:
            logger.debug("Connection unregistered", url=url, frames=entry.frames_received)
        return entry

    def request_close(self, url: str, quiet: bool = False) -> bool:
        """
        Flag the entry for ``url`` for cancellation.

        The owning receive loop stops at its next frame; the socket is not
        touched here.

        Args:
            url: Registry key
            quiet: Suppress the "closed" notification when the loop exits

        Returns:
            Whether an entry was found
        """
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return False
            entry.cancel_requested = True
            entry.quiet_close = entry.quiet_close or quiet
            return True

    def request_close_all(self) -> int:
        """
        Flag every current entry for cancellation.

        Returns:
            Number of entries flagged
        """
        with self._lock:
            urls = list(self._entries.keys())

        count = sum(1 for url in urls if self.request_close(url))
        logger.debug("Close requested for all connections", count=count)
        return count

    def is_cancel_requested(self, url: str) -> bool:
        """True if the entry is flagged or no longer registered."""
        with self._lock:
            entry = self._entries.get(url)
            return entry is None or entry.cancel_requested

    def record_frame(self, url: str) -> int:
        """Increment the frame counter of an entry and return the new count."""
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return 0
            entry.frames_received += 1
            return entry.frames_received

    def get(self, url: str) -> Optional[ConnectionEntry]:
        with self._lock:
            entry = self._entries.get(url)
            return replace(entry) if entry is not None else None

    def list(self) -> List[ConnectionEntry]:
        """Snapshot of all entries."""
        with self._lock:
            return [replace(entry) for entry in self._entries.values()]

    def find(self, stream_type: StreamType) -> List[ConnectionEntry]:
        """Snapshot of the entries of one stream type."""
        return [entry for entry in self.list() if entry.identity.stream_type == stream_type]
