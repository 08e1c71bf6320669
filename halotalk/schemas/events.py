from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from halotalk.constants import ChatEvent


def iso_timestamp(moment: datetime | None = None) -> str:
    """
    Format a moment as ISO-8601 UTC with millisecond precision.

    Example:
        >>> iso_timestamp(datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc))
        '2024-05-01T10:00:00.000Z'
    """
    moment = moment or datetime.now(timezone.utc)
    return (
        moment.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class EventEnvelope(BaseModel):
    """
    Frame exchanged over the chat WebSocket, in both directions.

    Attributes:
        event: Event name (see ChatEvent).
        data: Event payload; shape depends on the event.
    """

    event: str
    data: Any = None


class ChatMessageIn(BaseModel):
    """Client payload of a ``chat message`` event."""

    message: str = ""

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""


class PresenceModel(BaseModel):
    """Payload of ``user joined`` and ``user left``."""

    model_config = ConfigDict(populate_by_name=True)

    username: str
    total_users: int = Field(alias="totalUsers", ge=0)


class ChatMessageOut(BaseModel):
    """Payload of a broadcast ``chat message``."""

    username: str
    message: str
    timestamp: str = Field(default_factory=iso_timestamp)


class ServerEvent(BaseModel):
    """Event sent from the server to clients."""

    event: ChatEvent = Field(frozen=True)
    data: PresenceModel | ChatMessageOut | str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the protocol's camelCase field names."""
        return self.model_dump(mode="json", by_alias=True)
