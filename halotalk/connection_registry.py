"""Presence registry mapping live connection ids to display names."""

import threading

from halotalk.exceptions import RegistryClosedError
from halotalk.logging import logger


class ConnectionRegistry:
    """
    Authoritative map of who is currently present in the chat.

    One entry per joined connection: ``connection_id -> display name``.
    Connections that never sent ``join`` have no entry and are not counted.

    All operations are serialized behind a single lock. On the asyncio
    event loop they never interleave anyway, but the lock keeps the
    registry safe when it is touched from worker threads.

    The registry has an explicit lifecycle: it is created by the
    application lifespan and closed on shutdown. A closed registry raises
    ``RegistryClosedError`` instead of silently starting over.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise RegistryClosedError("Connection registry is closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def record(self, connection_id: str, name: str) -> None:
        """
        Insert or overwrite the display name for a connection.

        Empty names and names already used by other connections are legal.

        Args:
            connection_id: Transport-assigned connection identifier.
            name: Display name chosen by the client.
        """
        with self._lock:
            self._ensure_open()
            previous = self._entries.get(connection_id)
            self._entries[connection_id] = name

        if previous is not None and previous != name:
            logger.debug(
                f"Connection {connection_id} renamed from {previous!r} to {name!r}"
            )

    def lookup(self, connection_id: str) -> str | None:
        """
        Get the display name recorded for a connection.

        Returns:
            The name, or None if the connection never joined or already left.
        """
        with self._lock:
            self._ensure_open()
            return self._entries.get(connection_id)

    def remove(self, connection_id: str) -> str | None:
        """
        Delete the entry for a connection.

        Calling this more than once for the same id is a no-op after the
        first call.

        Returns:
            The removed name, or None if there was no entry.
        """
        with self._lock:
            self._ensure_open()
            return self._entries.pop(connection_id, None)

    def size(self) -> int:
        """Number of joined connections (the presence total)."""
        with self._lock:
            self._ensure_open()
            return len(self._entries)

    def snapshot(self) -> dict[str, str]:
        """Copy of the current entries."""
        with self._lock:
            self._ensure_open()
            return dict(self._entries)

    def close(self) -> None:
        """End the registry lifecycle, dropping all entries."""
        with self._lock:
            if self._closed:
                return
            dropped = len(self._entries)
            self._entries.clear()
            self._closed = True

        logger.info(f"Connection registry closed ({dropped} entries dropped)")
