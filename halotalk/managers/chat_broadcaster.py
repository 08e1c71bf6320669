"""
Chat event broadcaster.

Resolves each client event against the presence registry and relays the
result to the live connections:

    join          -> "user joined" to everyone, sender included
    chat message  -> "chat message" to everyone, sender included
    typing        -> "typing" to everyone but the sender
    stop typing   -> "stop typing" to everyone but the sender
    disconnect    -> "user left" to everyone still connected, once
"""

from fastapi import WebSocket

from halotalk.connection_registry import ConnectionRegistry
from halotalk.constants import ANONYMOUS_USERNAME, ChatEvent
from halotalk.logging import logger, set_log_context
from halotalk.managers.websocket_connection_manager import ConnectionManager
from halotalk.schemas.events import ChatMessageOut, PresenceModel, ServerEvent


class ChatBroadcaster:
    """
    Per-room event handling on top of a registry and a connection manager.

    Both collaborators are injected so every test can start from a fresh
    registry. Events from a connection that has disconnected are ignored.

    A connection stays open from `connect()` until `disconnect()`. A failed
    send only removes its socket from the recipients of later fan-outs; the
    connection may still send events and keeps its presence entry.
    """

    def __init__(
        self, registry: ConnectionRegistry, connections: ConnectionManager
    ) -> None:
        self.registry = registry
        self.connections = connections
        self._open_ids: set[str] = set()

    def is_live(self, connection_id: str) -> bool:
        return connection_id in self._open_ids

    def connect(self, connection_id: str, websocket: WebSocket) -> None:
        """Start tracking a freshly accepted connection (no registry entry)."""
        self._open_ids.add(connection_id)
        self.connections.connect(connection_id, websocket)
        logger.info(f"New user connected: {connection_id}")

    async def join(self, connection_id: str, name: str) -> None:
        """
        Record the display name and announce the new presence total.

        A second join from the same connection overwrites its name and is
        announced again; the total does not change.
        """
        if not self.is_live(connection_id):
            logger.debug(f"Ignoring join from closed connection {connection_id}")
            return

        self.registry.record(connection_id, name)
        set_log_context(username=name)
        total = self.registry.size()
        await self.connections.broadcast(
            ServerEvent(
                event=ChatEvent.USER_JOINED,
                data=PresenceModel(username=name, total_users=total),
            )
        )
        logger.info(f"{name} joined the chat")

    async def message(self, connection_id: str, text: str) -> None:
        """Relay a chat message, stamped with the server's clock."""
        if not self.is_live(connection_id):
            logger.debug(
                f"Ignoring chat message from closed connection {connection_id}"
            )
            return

        username = self.registry.lookup(connection_id) or ANONYMOUS_USERNAME
        await self.connections.broadcast(
            ServerEvent(
                event=ChatEvent.CHAT_MESSAGE,
                data=ChatMessageOut(username=username, message=text),
            )
        )
        logger.debug(f"Relayed chat message from {username}")

    async def typing(self, connection_id: str) -> None:
        """Tell everyone else the sender is typing (name may be None)."""
        if not self.is_live(connection_id):
            return

        username = self.registry.lookup(connection_id)
        await self.connections.broadcast(
            ServerEvent(event=ChatEvent.TYPING, data=username),
            exclude=(connection_id,),
        )

    async def stop_typing(self, connection_id: str) -> None:
        """Tell everyone else the sender stopped typing."""
        if not self.is_live(connection_id):
            return

        await self.connections.broadcast(
            ServerEvent(event=ChatEvent.STOP_TYPING),
            exclude=(connection_id,),
        )

    async def disconnect(self, connection_id: str) -> None:
        """
        Forget the connection and announce the departure.

        Safe to call more than once: only the call that actually removes
        a registry entry broadcasts ``user left``. Connections that never
        joined leave silently.
        """
        self._open_ids.discard(connection_id)
        self.connections.disconnect(connection_id)

        username = self.registry.remove(connection_id)
        if username is None:
            logger.debug(f"Connection {connection_id} left without joining")
            return

        total = self.registry.size()
        await self.connections.broadcast(
            ServerEvent(
                event=ChatEvent.USER_LEFT,
                data=PresenceModel(username=username, total_users=total),
            )
        )
        logger.info(f"{username} left the chat")
