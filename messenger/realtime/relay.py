import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .events import (
    PresenceChange,
    RelayedEvent,
    RelayMessagePayload,
    SeenPayload,
    ServerEvents,
    TypingStartPayload,
    TypingStopPayload,
)
from .rooms import RoomMembership

logger = logging.getLogger(__name__)


class Transport(ABC):
    """Delivers outbound events to live connections."""

    @abstractmethod
    async def send(self, connection_id: str, event: str, data: Dict[str, Any]) -> None:
        """Deliver an event to one connection."""

    @abstractmethod
    async def broadcast(self, event: str, data: Dict[str, Any]) -> None:
        """Deliver an event to every connection."""


class FanoutRelay:
    """Forwards room-scoped events to the members of the room.

    Fire-and-forget: recipients are snapshotted, sends run concurrently, and
    a failed send is logged without affecting the other recipients.
    """

    def __init__(self, membership: RoomMembership, transport: Transport):
        self.membership = membership
        self.transport = transport

    async def broadcast_to_room(
        self,
        event: RelayedEvent,
        origin: Optional[str] = None,
        exclude_self: bool = False,
    ) -> int:
        """Deliver event to every member of event.room_id.

        Args:
            event: The event to forward
            origin: Connection the event came from
            exclude_self: Whether origin is skipped

        Returns:
            The number of successful deliveries
        """
        recipients = [
            connection_id
            for connection_id in self.membership.members(event.room_id)
            if not (exclude_self and connection_id == origin)
        ]
        if not recipients:
            logger.debug(
                f"No recipients for {event.type.value} in room {event.room_id}"
            )
            return 0

        results = await asyncio.gather(
            *(
                self._deliver(connection_id, event.type.value, event.body)
                for connection_id in recipients
            )
        )
        delivered = sum(results)
        logger.debug(
            f"{event.type.value} delivered to {delivered}/{len(recipients)} "
            f"members of room {event.room_id}"
        )
        return delivered

    async def broadcast_presence(self, change: PresenceChange) -> None:
        """Tell every connection that a user went online or offline."""
        try:
            await self.transport.broadcast(
                ServerEvents.PRESENCE_CHANGED.value, change.to_payload()
            )
        except Exception as e:
            logger.warning(
                f"Failed to broadcast presence of {change.user_id}: {e}"
            )

    async def relay_message(
        self, origin: str, payload: RelayMessagePayload
    ) -> int:
        # The sender gets its own message back
        body = {**payload.message, "roomId": payload.room_id}
        event = RelayedEvent(
            type=ServerEvents.MESSAGE_RECEIVED, room_id=payload.room_id, body=body
        )
        delivered = await self.broadcast_to_room(event, origin, exclude_self=False)
        logger.info(
            f"Message {payload.message.get('_id', 'new')} broadcast to room "
            f"{payload.room_id}"
        )
        return delivered

    async def relay_typing_start(
        self, origin: str, payload: TypingStartPayload
    ) -> int:
        event = RelayedEvent(
            type=ServerEvents.USER_TYPING,
            room_id=payload.room_id,
            body={"userId": payload.user_id, "username": payload.username},
        )
        return await self.broadcast_to_room(event, origin, exclude_self=True)

    async def relay_typing_stop(
        self, origin: str, payload: TypingStopPayload
    ) -> int:
        event = RelayedEvent(
            type=ServerEvents.USER_STOPPED_TYPING,
            room_id=payload.room_id,
            body={"userId": payload.user_id},
        )
        return await self.broadcast_to_room(event, origin, exclude_self=True)

    async def relay_seen(self, origin: str, payload: SeenPayload) -> int:
        event = RelayedEvent(
            type=ServerEvents.MESSAGE_SEEN,
            room_id=payload.room_id,
            body={"messageId": payload.message_id, "userId": payload.user_id},
        )
        return await self.broadcast_to_room(event, origin, exclude_self=True)

    async def _deliver(
        self, connection_id: str, event: str, data: Dict[str, Any]
    ) -> bool:
        try:
            await self.transport.send(connection_id, event, data)
            return True
        except Exception as e:
            logger.warning(f"Failed to deliver {event} to {connection_id}: {e}")
            return False
