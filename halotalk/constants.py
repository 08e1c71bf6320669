"""
Application-level constants for the chat protocol.

These values define the wire protocol shared with the browser client and
must not be changed via environment variables. For configurable values
(port, paths, logging) see halotalk/settings.py.
"""

from enum import StrEnum


class ChatEvent(StrEnum):
    """
    Event names exchanged over the chat WebSocket.

    Client to server:
        JOIN, CHAT_MESSAGE, TYPING, STOP_TYPING

    Server to client:
        USER_JOINED, USER_LEFT, CHAT_MESSAGE, TYPING, STOP_TYPING
    """

    JOIN = "join"
    CHAT_MESSAGE = "chat message"
    TYPING = "typing"
    STOP_TYPING = "stop typing"
    USER_JOINED = "user joined"
    USER_LEFT = "user left"


# Events a client is allowed to send
CLIENT_EVENTS = frozenset(
    {
        ChatEvent.JOIN,
        ChatEvent.CHAT_MESSAGE,
        ChatEvent.TYPING,
        ChatEvent.STOP_TYPING,
    }
)

# Display name used for messages from connections that never joined
ANONYMOUS_USERNAME = "Anonymous"


# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# Length of correlation IDs attached to logs
CORRELATION_ID_LENGTH = 8

# Timeout (seconds) when closing WebSocket connections during shutdown
WS_CLOSE_TIMEOUT_SECONDS = 5

# Loki rejects log lines above this size
LOKI_MAX_LOG_SIZE_BYTES = 256 * 1024
