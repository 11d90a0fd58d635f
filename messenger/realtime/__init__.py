"""
Realtime package

Presence tracking, room membership and fan-out of chat events over
Socket.IO.
"""

from .lifecycle import ConnectionLifecycle
from .presence import PresenceRegistry
from .relay import FanoutRelay, Transport
from .rooms import RoomMembership
from .socket_server import SocketServer

__all__ = [
    "ConnectionLifecycle",
    "FanoutRelay",
    "PresenceRegistry",
    "RoomMembership",
    "SocketServer",
    "Transport",
]
