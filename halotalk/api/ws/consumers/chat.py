from typing import Any

from fastapi import APIRouter
from starlette.websockets import WebSocket

from halotalk.api.ws.handlers import load_handlers
from halotalk.api.ws.websocket import ChatWebSocketEndpoint
from halotalk.logging import logger
from halotalk.routing import event_router
from halotalk.settings import app_settings

load_handlers()

router = APIRouter()


@router.websocket_route(app_settings.WS_PATH)
class Chat(ChatWebSocketEndpoint):
    """
    The chat room's event channel.

    Every frame is an envelope ``{"event": str, "data": any}``; the event
    name selects the handler registered on `event_router`.
    """

    async def on_receive(self, websocket: WebSocket, data: Any) -> None:
        """
        Routes one decoded frame to its event handler.

        Raises:
            MalformedEventError: If the frame is not an event envelope.
            UnknownEventError: If no handler exists for the event name.
        """
        envelope = event_router.parse(data)
        logger.debug(f"Received {envelope.event!r} event")

        await event_router.handle_event(
            self.broadcaster, self.connection_id, envelope
        )
