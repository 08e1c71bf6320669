"""
Custom exception classes for the application.

None of these are ever sent to a client: the chat protocol has no error
channel, so they are raised inside the server and handled (logged) at the
WebSocket endpoint boundary.
"""


class HaloTalkError(Exception):
    """Base class for all application errors."""

    pass


class RegistryClosedError(HaloTalkError):
    """
    Connection registry used after shutdown.

    Raised when an operation is attempted on a registry whose lifecycle
    has already ended.
    """

    pass


class MalformedEventError(HaloTalkError):
    """
    Incoming frame is not a valid event envelope.

    Raised when a frame is not JSON, is not an object, or carries no
    string ``event`` field.
    """

    pass


class UnknownEventError(HaloTalkError):
    """
    No handler is registered for the incoming event name.

    Attributes:
        event: The event name that was received.
    """

    def __init__(self, event: str):
        super().__init__(f"No handler registered for event {event!r}")
        self.event = event
