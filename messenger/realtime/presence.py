import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .events import PresenceChange, PresenceStatus

logger = logging.getLogger(__name__)

PresenceListener = Callable[[PresenceChange], Awaitable[None]]


class PresenceRegistry:
    """Tracks which connection each online user is reachable on.

    One entry per user; a newer connection for the same user replaces the
    older one. A connection stands for at most one user. Every change is
    reported to the listener after the mapping has been updated.
    """

    def __init__(self, listener: Optional[PresenceListener] = None):
        self._user_to_connection: Dict[str, str] = {}
        self._connection_to_user: Dict[str, str] = {}
        self._listener = listener

    def set_listener(self, listener: Optional[PresenceListener]) -> None:
        self._listener = listener

    async def set_online(self, user_id: str, connection_id: str) -> None:
        """Map user_id to connection_id and announce the user online."""
        replaced: Optional[str] = None
        previous_user = self._connection_to_user.get(connection_id)
        if previous_user is not None and previous_user != user_id:
            del self._user_to_connection[previous_user]
            replaced = previous_user

        previous_connection = self._user_to_connection.get(user_id)
        if previous_connection is not None and previous_connection != connection_id:
            self._connection_to_user.pop(previous_connection, None)
            logger.info(
                f"User {user_id} moved from connection {previous_connection} "
                f"to {connection_id}"
            )

        self._user_to_connection[user_id] = connection_id
        self._connection_to_user[connection_id] = user_id
        logger.info(f"User {user_id} is online with connection {connection_id}")

        if replaced is not None:
            logger.info(
                f"Connection {connection_id} re-identified, {replaced} is offline"
            )
            await self._notify(replaced, PresenceStatus.OFFLINE)
        await self._notify(user_id, PresenceStatus.ONLINE)

    async def remove_by_connection(self, connection_id: str) -> Optional[str]:
        """Drop the entry held by connection_id and announce the user offline.

        Returns the user id that went offline, or None when the connection
        was never identified or has been superseded.
        """
        user_id = self._connection_to_user.pop(connection_id, None)
        if user_id is None:
            return None

        del self._user_to_connection[user_id]
        logger.info(f"User {user_id} went offline")
        await self._notify(user_id, PresenceStatus.OFFLINE)
        return user_id

    def get_connection(self, user_id: str) -> Optional[str]:
        return self._user_to_connection.get(user_id)

    def get_user(self, connection_id: str) -> Optional[str]:
        return self._connection_to_user.get(connection_id)

    def is_online(self, user_id: str) -> bool:
        return user_id in self._user_to_connection

    def online_users(self) -> List[str]:
        return list(self._user_to_connection)

    def clear(self) -> None:
        self._user_to_connection.clear()
        self._connection_to_user.clear()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._user_to_connection

    def __len__(self) -> int:
        return len(self._user_to_connection)

    async def _notify(self, user_id: str, status: PresenceStatus) -> None:
        if self._listener is None:
            return
        await self._listener(PresenceChange(user_id=user_id, status=status))
