import logging
from typing import Dict, List, Set

logger = logging.getLogger(__name__)


class RoomMembership:
    """In-memory many-to-many relation between connections and rooms.

    Room ids are chat ids. Rooms exist only while they have members.
    """

    def __init__(self):
        self._members: Dict[str, Set[str]] = {}  # room id -> connection ids
        self._rooms: Dict[str, Set[str]] = {}  # connection id -> room ids

    def join(self, connection_id: str, room_id: str) -> bool:
        """Add a connection to a room. Returns False if it was already in."""
        members = self._members.setdefault(room_id, set())
        if connection_id in members:
            return False
        members.add(connection_id)
        self._rooms.setdefault(connection_id, set()).add(room_id)
        logger.info(f"Connection {connection_id} joined room {room_id}")
        return True

    def leave(self, connection_id: str, room_id: str) -> bool:
        """Remove a connection from a room. Returns False if it was not in."""
        members = self._members.get(room_id)
        if not members or connection_id not in members:
            return False

        members.discard(connection_id)
        if not members:
            del self._members[room_id]

        rooms = self._rooms.get(connection_id)
        if rooms is not None:
            rooms.discard(room_id)
            if not rooms:
                del self._rooms[connection_id]

        logger.info(f"Connection {connection_id} left room {room_id}")
        return True

    def purge(self, connection_id: str) -> Set[str]:
        """Remove a connection from every room it joined."""
        rooms = self._rooms.pop(connection_id, set())
        for room_id in rooms:
            members = self._members.get(room_id)
            if members is None:
                continue
            members.discard(connection_id)
            if not members:
                del self._members[room_id]
        if rooms:
            logger.debug(
                f"Connection {connection_id} purged from {len(rooms)} rooms"
            )
        return rooms

    def members(self, room_id: str) -> List[str]:
        """Snapshot of the connections currently in a room."""
        return list(self._members.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        return set(self._rooms.get(connection_id, ()))

    def is_member(self, connection_id: str, room_id: str) -> bool:
        return connection_id in self._members.get(room_id, ())

    def room_count(self) -> int:
        return len(self._members)
