"""
Connection lifecycle and inbound event dispatch.

Each connection moves CONNECTED -> ONLINE (after identify) -> DISCONNECTED.
Inbound events are routed through a dispatch table keyed by ClientEvents.
Mutations of presence and room state happen between awaits on the single
event loop, so handlers never interleave inside one.
"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from .events import (
    ClientEvents,
    RelayMessagePayload,
    SeenPayload,
    TypingStartPayload,
    TypingStopPayload,
    parse_identifier,
    parse_payload,
)
from .exceptions import IdentityMismatch, MalformedEvent
from .presence import PresenceRegistry
from .relay import FanoutRelay, Transport
from .rooms import RoomMembership

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, Any], Awaitable[None]]


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    ONLINE = "online"
    DISCONNECTED = "disconnected"


class Connection(BaseModel):
    """A live transport session"""

    connection_id: str
    state: ConnectionState = ConnectionState.CONNECTED
    user_id: Optional[str] = None
    authenticated_user_id: Optional[str] = None
    connected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ConnectionLifecycle:
    """Owns presence and room state for one socket server."""

    def __init__(
        self,
        transport: Transport,
        presence: Optional[PresenceRegistry] = None,
        membership: Optional[RoomMembership] = None,
        require_identity_match: bool = False,
    ):
        self.presence = presence or PresenceRegistry()
        self.membership = membership or RoomMembership()
        self.relay = FanoutRelay(self.membership, transport)
        self.presence.set_listener(self.relay.broadcast_presence)
        self.require_identity_match = require_identity_match
        self.connections: Dict[str, Connection] = {}

        self._handlers: Dict[ClientEvents, EventHandler] = {
            ClientEvents.IDENTIFY: self._on_identify,
            ClientEvents.JOIN_ROOM: self._on_join_room,
            ClientEvents.LEAVE_ROOM: self._on_leave_room,
            ClientEvents.RELAY_MESSAGE: self._on_relay_message,
            ClientEvents.TYPING_START: self._on_typing_start,
            ClientEvents.TYPING_STOP: self._on_typing_stop,
            ClientEvents.SEEN: self._on_seen,
        }

    def connect(
        self, connection_id: str, authenticated_user_id: Optional[str] = None
    ) -> Connection:
        """Register a new transport session."""
        connection = Connection(
            connection_id=connection_id,
            authenticated_user_id=authenticated_user_id,
        )
        self.connections[connection_id] = connection
        logger.info(f"Connection {connection_id} established")
        return connection

    async def dispatch(self, connection_id: str, event: str, data: Any = None) -> None:
        """Route one inbound event to its handler.

        Unknown connections, unknown events and malformed payloads are
        logged and dropped; nothing is reported back to the client.
        """
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.warning(
                f"Dropping {event} from unknown connection {connection_id}"
            )
            return

        try:
            handler = self._handlers[ClientEvents(event)]
        except ValueError:
            logger.warning(f"Dropping unknown event {event} from {connection_id}")
            return

        try:
            await handler(connection_id, data)
        except MalformedEvent as e:
            logger.warning(f"{e} (connection {connection_id}, data {data!r})")

    async def disconnect(self, connection_id: str) -> Optional[str]:
        """Tear down a connection's rooms and presence.

        Returns the user id that went offline, if any.
        """
        connection = self.connections.pop(connection_id, None)
        if connection is not None:
            connection.state = ConnectionState.DISCONNECTED

        self.membership.purge(connection_id)
        user_id = await self.presence.remove_by_connection(connection_id)
        logger.info(f"Connection {connection_id} disconnected")
        return user_id

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def online_users(self) -> List[str]:
        return self.presence.online_users()

    async def _on_identify(self, connection_id: str, data: Any) -> None:
        user_id = parse_identifier(ClientEvents.IDENTIFY, data, "userId")
        connection = self.connections[connection_id]

        authenticated = connection.authenticated_user_id
        if self.require_identity_match and authenticated != user_id:
            raise IdentityMismatch(user_id, str(authenticated))

        superseded = self.connections.get(
            self.presence.get_connection(user_id) or ""
        )
        if superseded is not None and superseded is not connection:
            # The older connection stays open but no longer speaks for the user
            superseded.user_id = None
            superseded.state = ConnectionState.CONNECTED

        connection.user_id = user_id
        connection.state = ConnectionState.ONLINE
        await self.presence.set_online(user_id, connection_id)

    async def _on_join_room(self, connection_id: str, data: Any) -> None:
        room_id = parse_identifier(ClientEvents.JOIN_ROOM, data, "roomId")
        self.membership.join(connection_id, room_id)

    async def _on_leave_room(self, connection_id: str, data: Any) -> None:
        room_id = parse_identifier(ClientEvents.LEAVE_ROOM, data, "roomId")
        self.membership.leave(connection_id, room_id)

    async def _on_relay_message(self, connection_id: str, data: Any) -> None:
        payload = parse_payload(
            ClientEvents.RELAY_MESSAGE, RelayMessagePayload, data
        )
        await self.relay.relay_message(connection_id, payload)

    async def _on_typing_start(self, connection_id: str, data: Any) -> None:
        payload = parse_payload(ClientEvents.TYPING_START, TypingStartPayload, data)
        await self.relay.relay_typing_start(connection_id, payload)

    async def _on_typing_stop(self, connection_id: str, data: Any) -> None:
        payload = parse_payload(ClientEvents.TYPING_STOP, TypingStopPayload, data)
        await self.relay.relay_typing_stop(connection_id, payload)

    async def _on_seen(self, connection_id: str, data: Any) -> None:
        payload = parse_payload(ClientEvents.SEEN, SeenPayload, data)
        await self.relay.relay_seen(connection_id, payload)
