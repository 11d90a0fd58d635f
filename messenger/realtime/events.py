from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .exceptions import MalformedEvent


class ClientEvents(str, Enum):
    """Events sent from clients to server"""

    IDENTIFY = "identify"
    JOIN_ROOM = "join-room"
    LEAVE_ROOM = "leave-room"
    RELAY_MESSAGE = "relay-message"
    TYPING_START = "typing-start"
    TYPING_STOP = "typing-stop"
    SEEN = "seen"


class ServerEvents(str, Enum):
    """Events sent from server to clients"""

    PRESENCE_CHANGED = "presence-changed"
    MESSAGE_RECEIVED = "message-received"
    USER_TYPING = "user-typing"
    USER_STOPPED_TYPING = "user-stopped-typing"
    MESSAGE_SEEN = "message-seen"


class PresenceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class PresenceChange(BaseModel):
    """A user going online or offline"""

    user_id: str
    status: PresenceStatus

    def to_payload(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "status": self.status.value}


class RelayedEvent(BaseModel):
    """Transient event forwarded to the members of a room, never stored"""

    type: ServerEvents
    room_id: str
    body: Dict[str, Any]


class InboundPayload(BaseModel):
    """Base for payloads clients send with room-scoped events"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    room_id: str = Field(..., min_length=1)


class RelayMessagePayload(InboundPayload):
    message: Dict[str, Any]


class TypingStartPayload(InboundPayload):
    user_id: str = Field(..., min_length=1)
    username: Optional[str] = None


class TypingStopPayload(InboundPayload):
    user_id: str = Field(..., min_length=1)


class SeenPayload(InboundPayload):
    message_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)


PayloadType = TypeVar("PayloadType", bound=InboundPayload)


def parse_payload(
    event: ClientEvents, model: Type[PayloadType], data: Any
) -> PayloadType:
    """Validate a room-scoped payload.

    Raises:
        MalformedEvent: If a required field is missing or has the wrong type
    """
    if not isinstance(data, dict):
        raise MalformedEvent(event.value, "payload must be an object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in error["loc"]) for error in e.errors()
        )
        raise MalformedEvent(event.value, f"invalid fields: {fields}") from e


def parse_identifier(event: ClientEvents, data: Any, key: str) -> str:
    """Read a bare id sent either as a string or as {key: id}.

    Raises:
        MalformedEvent: If no non-empty string id can be found
    """
    value = data.get(key) if isinstance(data, dict) else data
    if not isinstance(value, str) or not value:
        raise MalformedEvent(event.value, f"missing {key}")
    return value
