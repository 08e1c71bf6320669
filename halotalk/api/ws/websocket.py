import json
import uuid
from typing import Any

from starlette import status
from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket

from halotalk.exceptions import (
    HaloTalkError,
    MalformedEventError,
    RegistryClosedError,
)
from halotalk.logging import clear_log_context, logger, set_log_context
from halotalk.managers.chat_broadcaster import ChatBroadcaster


class ChatWebSocketEndpoint(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint for the shared chat room.

    Assigns every accepted connection an opaque id, keeps the connection
    open across bad frames and hands the connection lifecycle to the
    application's ChatBroadcaster.
    """

    encoding = None  # Frames are decoded as JSON in decode()

    connection_id: str | None = None

    @property
    def broadcaster(self) -> ChatBroadcaster:
        return self.scope["app"].state.broadcaster

    async def dispatch(self) -> None:
        """
        Run the connection lifecycle.

        1. Accepts the socket and registers it (on_connect).
        2. Receives frames until the client goes away. Frames that fail
           with an application error are logged and skipped.
        3. Always runs on_disconnect, whatever ended the loop.
        """
        websocket = WebSocket(self.scope, receive=self.receive, send=self.send)
        await self.on_connect(websocket)

        close_code = status.WS_1000_NORMAL_CLOSURE

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.receive":
                    try:
                        data = await self.decode(websocket, message)
                        await self.on_receive(websocket, data)
                    except HaloTalkError as exc:
                        logger.warning(
                            f"Ignoring frame from connection "
                            f"{self.connection_id}: {exc}"
                        )
                elif message["type"] == "websocket.disconnect":
                    close_code = int(
                        message.get("code") or status.WS_1000_NORMAL_CLOSURE
                    )
                    break
        except Exception as exc:
            close_code = status.WS_1011_INTERNAL_ERROR
            raise exc
        finally:
            await self.on_disconnect(websocket, close_code)

    async def decode(self, websocket: WebSocket, message: dict[str, Any]) -> Any:
        """
        Decode a text or binary frame as JSON.

        Raises:
            MalformedEventError: If the frame is not valid JSON.
        """
        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes") or b""
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedEventError(f"Frame is not valid JSON: {e}") from e

    async def on_connect(self, websocket: WebSocket) -> None:
        """
        Accepts the connection and starts tracking it.

        The connection has no registry entry until it sends ``join``.
        """
        await websocket.accept()

        self.connection_id = str(uuid.uuid4())
        set_log_context(connection_id=self.connection_id)

        self.broadcaster.connect(self.connection_id, websocket)

    async def on_disconnect(self, websocket: WebSocket, close_code: int) -> None:
        """
        Forgets the connection and announces the departure if it had joined.
        """
        if self.connection_id is not None:
            try:
                await self.broadcaster.disconnect(self.connection_id)
            except RegistryClosedError:
                logger.debug(
                    f"Registry closed before connection {self.connection_id} "
                    "could leave, skipping departure"
                )

        logger.debug(
            f"Connection {self.connection_id} closed with code {close_code}"
        )
        clear_log_context()
