import logging
from typing import Any, Dict, Optional

import socketio
from socketio.exceptions import ConnectionRefusedError

from ..core.config import Settings, get_settings, get_socket_io_config
from ..users.security import Unauthenticated, authenticate_token
from .lifecycle import ConnectionLifecycle
from .relay import Transport

# Configure logging
logger = logging.getLogger(__name__)


class SocketIOTransport(Transport):
    """Transport backed by a python-socketio server."""

    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio

    async def send(self, connection_id: str, event: str, data: Dict[str, Any]) -> None:
        await self.sio.emit(event, data, to=connection_id)

    async def broadcast(self, event: str, data: Dict[str, Any]) -> None:
        await self.sio.emit(event, data)


class SocketServer:
    """Socket.IO server implementation."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the Socket.IO server."""
        self.settings = settings or get_settings()
        self.sio = socketio.AsyncServer(
            logger=self.settings.DEBUG,
            engineio_logger=False,
            **get_socket_io_config(self.settings),
        )
        self.transport = SocketIOTransport(self.sio)
        self.lifecycle = ConnectionLifecycle(
            self.transport,
            require_identity_match=self.settings.SOCKET_REQUIRE_AUTH,
        )

        # Register event handlers
        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        # Everything else goes through the lifecycle dispatch table
        self.sio.on("*", self._on_event)

    @property
    def presence(self):
        return self.lifecycle.presence

    @property
    def membership(self):
        return self.lifecycle.membership

    async def _on_connect(
        self, sid: str, environ: Dict[str, Any], auth: Any = None
    ) -> None:
        """Handle new socket connection."""
        token = auth.get("token") if isinstance(auth, dict) else None

        user_id: Optional[str] = None
        if token:
            try:
                user_id = authenticate_token(token)
            except Unauthenticated as e:
                logger.warning(f"Token validation failed for {sid}: {e}")
                if self.settings.SOCKET_REQUIRE_AUTH:
                    raise ConnectionRefusedError("authentication failed")
        elif self.settings.SOCKET_REQUIRE_AUTH:
            logger.warning(f"No token provided by {sid}, refusing connection")
            raise ConnectionRefusedError("authentication required")

        self.lifecycle.connect(sid, authenticated_user_id=user_id)
        logger.info(f"New client connected: {sid}")

    async def _on_disconnect(self, sid: str, reason: Any = None) -> None:
        """Handle socket disconnection."""
        logger.info(f"Client disconnected: {sid} ({reason})")
        await self.lifecycle.disconnect(sid)

    async def _on_event(self, event: str, sid: str, *args: Any) -> None:
        """Hand any other inbound event to the lifecycle dispatcher."""
        data = args[0] if args else None
        await self.lifecycle.dispatch(sid, event, data)

    async def shutdown(self) -> None:
        """Drop every tracked connection."""
        logger.info("Socket.IO server shutting down")
        for sid in list(self.lifecycle.connections):
            await self.lifecycle.disconnect(sid)
