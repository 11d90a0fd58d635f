import pytest

from messenger.realtime.events import (
    PresenceChange,
    PresenceStatus,
    RelayedEvent,
    RelayMessagePayload,
    SeenPayload,
    ServerEvents,
    TypingStartPayload,
    TypingStopPayload,
)
from messenger.realtime.relay import FanoutRelay
from messenger.realtime.rooms import RoomMembership


@pytest.fixture
def membership():
    rooms = RoomMembership()
    rooms.join("c1", "room")
    rooms.join("c2", "room")
    rooms.join("c3", "elsewhere")
    return rooms


@pytest.fixture
def relay(membership, transport):
    return FanoutRelay(membership, transport)


class TestFanoutRelay:
    @pytest.mark.asyncio
    async def test_message_reaches_every_member_including_sender(
        self, relay, transport
    ):
        payload = RelayMessagePayload(
            room_id="room", message={"_id": "m1", "text": "hi"}
        )
        delivered = await relay.relay_message("c1", payload)

        assert delivered == 2
        expected = {"_id": "m1", "text": "hi", "roomId": "room"}
        assert transport.received("c1") == [("message-received", expected)]
        assert transport.received("c2") == [("message-received", expected)]
        assert transport.received("c3") == []

    @pytest.mark.asyncio
    async def test_typing_excludes_sender(self, relay, transport):
        payload = TypingStartPayload(room_id="room", user_id="u1", username="ann")
        assert await relay.relay_typing_start("c1", payload) == 1

        assert transport.received("c1") == []
        assert transport.received("c2") == [
            ("user-typing", {"userId": "u1", "username": "ann"})
        ]

    @pytest.mark.asyncio
    async def test_stop_typing_excludes_sender(self, relay, transport):
        payload = TypingStopPayload(room_id="room", user_id="u1")
        assert await relay.relay_typing_stop("c2", payload) == 1
        assert transport.received("c1") == [
            ("user-stopped-typing", {"userId": "u1"})
        ]

    @pytest.mark.asyncio
    async def test_seen_excludes_sender(self, relay, transport):
        payload = SeenPayload(room_id="room", message_id="m1", user_id="u2")
        assert await relay.relay_seen("c2", payload) == 1
        assert transport.received("c1") == [
            ("message-seen", {"messageId": "m1", "userId": "u2"})
        ]

    @pytest.mark.asyncio
    async def test_sender_outside_room_still_relays(self, relay, transport):
        payload = RelayMessagePayload(room_id="room", message={"text": "hi"})
        assert await relay.relay_message("c3", payload) == 2
        assert transport.received("c3") == []

    @pytest.mark.asyncio
    async def test_empty_room_delivers_nothing(self, relay, transport):
        event = RelayedEvent(
            type=ServerEvents.MESSAGE_RECEIVED, room_id="ghost", body={}
        )
        assert await relay.broadcast_to_room(event) == 0
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_failed_send_does_not_affect_others(self, relay, transport):
        transport.failing.add("c1")
        payload = RelayMessagePayload(room_id="room", message={"text": "hi"})

        assert await relay.relay_message("c2", payload) == 1
        assert transport.received("c2") == [
            ("message-received", {"text": "hi", "roomId": "room"})
        ]

    @pytest.mark.asyncio
    async def test_presence_goes_to_everyone(self, relay, transport):
        await relay.broadcast_presence(
            PresenceChange(user_id="u1", status=PresenceStatus.ONLINE)
        )
        assert transport.broadcasts == [
            ("presence-changed", {"userId": "u1", "status": "online"})
        ]
        assert transport.sent == []
