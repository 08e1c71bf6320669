"""
Chat event handlers.

Each handler normalizes the client payload and hands it to the
ChatBroadcaster. Malformed payloads never reject the connection: they are
coerced to safe defaults (an empty string) instead.
"""

from typing import Any

from halotalk.constants import ChatEvent
from halotalk.managers.chat_broadcaster import ChatBroadcaster
from halotalk.routing import event_router
from halotalk.schemas.events import ChatMessageIn


def normalize_name(data: Any) -> str:
    """Display name sent with ``join``; anything but a string becomes ''."""
    return data if isinstance(data, str) else ""


def normalize_message(data: Any) -> str:
    """Text of a ``chat message`` payload ({"message": str})."""
    if not isinstance(data, dict):
        return ""
    return ChatMessageIn.model_validate(data).message


@event_router.register(ChatEvent.JOIN)
async def join_handler(
    broadcaster: ChatBroadcaster, connection_id: str, data: Any
) -> None:
    """
    Request Data: display name (string)

    Broadcast: "user joined" {"username": str, "totalUsers": int}
    """
    await broadcaster.join(connection_id, normalize_name(data))


@event_router.register(ChatEvent.CHAT_MESSAGE)
async def chat_message_handler(
    broadcaster: ChatBroadcaster, connection_id: str, data: Any
) -> None:
    """
    Request Data: {"message": str}

    Broadcast: "chat message" {"username": str, "message": str, "timestamp": str}
    """
    await broadcaster.message(connection_id, normalize_message(data))


@event_router.register(ChatEvent.TYPING)
async def typing_handler(
    broadcaster: ChatBroadcaster, connection_id: str, data: Any
) -> None:
    await broadcaster.typing(connection_id)


@event_router.register(ChatEvent.STOP_TYPING)
async def stop_typing_handler(
    broadcaster: ChatBroadcaster, connection_id: str, data: Any
) -> None:
    await broadcaster.stop_typing(connection_id)
