import asyncio
from collections.abc import Iterable

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from halotalk.constants import WS_CLOSE_TIMEOUT_SECONDS
from halotalk.logging import logger
from halotalk.schemas.events import ServerEvent


class ConnectionManager:
    """
    Manager for live WebSocket connections.

    Tracks every open chat socket by its connection id, joined or not,
    and fans events out to them.
    """

    def __init__(self) -> None:
        self.connections: dict[str, WebSocket] = {}

    def connect(self, connection_id: str, websocket: WebSocket) -> None:
        """
        Adds a live WebSocket connection.

        Args:
            connection_id: Transport-assigned identifier of the connection.
            websocket: The accepted WebSocket connection.
        """
        self.connections[connection_id] = websocket
        logger.debug(
            f"websocket object ({id(websocket)}) added to active connections "
            f"with id {connection_id}"
        )

    def disconnect(self, connection_id: str) -> None:
        """
        Removes a WebSocket connection by id. Unknown ids are ignored.
        """
        websocket = self.connections.pop(connection_id, None)
        if websocket is None:
            return

        logger.debug(
            f"websocket object ({id(websocket)}) removed from active connections "
            f"for id {connection_id}"
        )

    def get_connection(self, connection_id: str) -> WebSocket | None:
        return self.connections.get(connection_id)

    def __len__(self) -> int:
        return len(self.connections)

    async def broadcast(
        self, event: ServerEvent, exclude: Iterable[str] = ()
    ) -> int:
        """
        Sends an event to all live connections concurrently.

        A failed send to one recipient is logged and that recipient is
        dropped; delivery to the others goes on.

        Args:
            event: The event to send.
            exclude: Connection ids that must not receive the event.

        Returns:
            Number of recipients the event was sent to successfully.
        """
        excluded = set(exclude)
        # Snapshot, connections may come and go while sends are pending
        recipients = [
            (connection_id, connection)
            for connection_id, connection in self.connections.items()
            if connection_id not in excluded
        ]
        if not recipients:
            return 0

        payload = event.to_wire()

        async def safe_send(connection_id: str, connection: WebSocket) -> bool:
            try:
                await connection.send_json(payload)
                return True
            except (WebSocketDisconnect, ConnectionError, RuntimeError) as e:
                # RuntimeError: WebSocket already closed / invalid state
                logger.warning(
                    f"Failed to send {event.event!r} to connection "
                    f"{connection_id}: {e}"
                )
            except Exception as e:
                logger.warning(
                    f"Unexpected error sending {event.event!r} to connection "
                    f"{connection_id}: {e}"
                )
            self.disconnect(connection_id)
            return False

        results = await asyncio.gather(
            *[safe_send(cid, conn) for cid, conn in recipients],
            return_exceptions=True,
        )
        return sum(1 for result in results if result is True)

    async def close_all(self) -> None:
        """Close every live connection, used on shutdown."""
        if not self.connections:
            return

        connections = list(self.connections.items())
        self.connections.clear()

        async def safe_close(connection_id: str, connection: WebSocket) -> None:
            try:
                await asyncio.wait_for(
                    connection.close(), timeout=WS_CLOSE_TIMEOUT_SECONDS
                )
            except Exception as e:
                logger.debug(f"Error closing connection {connection_id}: {e}")

        await asyncio.gather(
            *[safe_close(cid, conn) for cid, conn in connections],
            return_exceptions=True,
        )
        logger.info(f"Closed {len(connections)} websocket connections")
