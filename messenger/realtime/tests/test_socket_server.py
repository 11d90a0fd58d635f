from unittest.mock import AsyncMock, call

import pytest
from socketio.exceptions import ConnectionRefusedError

from messenger.core.config import get_settings
from messenger.realtime.socket_server import SocketServer
from messenger.users.security import create_access_token


def make_server(**overrides) -> SocketServer:
    settings = get_settings().model_copy(update=overrides)
    server = SocketServer(settings)
    server.sio.emit = AsyncMock()
    return server


class TestSocketServer:
    def test_engine_options_come_from_given_settings(self):
        server = make_server(
            CORS_ORIGINS=["https://chat.example.com"],
            SOCKET_IO_PING_TIMEOUT=7,
            SOCKET_IO_MAX_HTTP_BUFFER_SIZE=2048,
        )
        assert server.sio.eio.cors_allowed_origins == ["https://chat.example.com"]
        assert server.sio.eio.ping_timeout == 7
        assert server.sio.eio.max_http_buffer_size == 2048

    @pytest.mark.asyncio
    async def test_full_flow(self):
        server = make_server()
        await server._on_connect("sid-a", {}, None)
        await server._on_connect("sid-b", {}, None)
        await server._on_event("identify", "sid-a", "u1")
        await server._on_event("join-room", "sid-a", "r1")
        await server._on_event("join-room", "sid-b", "r1")
        server.sio.emit.reset_mock()

        await server._on_event(
            "relay-message", "sid-a", {"roomId": "r1", "message": {"text": "hi"}}
        )

        body = {"text": "hi", "roomId": "r1"}
        server.sio.emit.assert_has_awaits(
            [
                call("message-received", body, to="sid-a"),
                call("message-received", body, to="sid-b"),
            ],
            any_order=True,
        )
        assert server.sio.emit.await_count == 2

    @pytest.mark.asyncio
    async def test_disconnect_broadcasts_offline(self):
        server = make_server()
        await server._on_connect("sid-a", {}, None)
        await server._on_event("identify", "sid-a", {"userId": "u1"})
        await server._on_event("join-room", "sid-a", "r1")
        server.sio.emit.reset_mock()

        await server._on_disconnect("sid-a", "client disconnect")

        server.sio.emit.assert_awaited_once_with(
            "presence-changed", {"userId": "u1", "status": "offline"}
        )
        assert "u1" not in server.presence
        assert server.membership.members("r1") == []

    @pytest.mark.asyncio
    async def test_event_without_payload_is_dropped(self):
        server = make_server()
        await server._on_connect("sid-a", {}, None)
        await server._on_event("join-room", "sid-a")
        assert server.membership.rooms_of("sid-a") == set()

    @pytest.mark.asyncio
    async def test_token_identifies_connection(self):
        server = make_server()
        token = create_access_token("u1")
        await server._on_connect("sid-a", {}, {"token": token})
        connection = server.lifecycle.get_connection("sid-a")
        assert connection.authenticated_user_id == "u1"

    @pytest.mark.asyncio
    async def test_bad_token_tolerated_when_auth_optional(self):
        server = make_server()
        await server._on_connect("sid-a", {}, {"token": "garbage"})
        connection = server.lifecycle.get_connection("sid-a")
        assert connection.authenticated_user_id is None

    @pytest.mark.asyncio
    async def test_auth_required_refuses_missing_or_bad_token(self):
        server = make_server(SOCKET_REQUIRE_AUTH=True)
        with pytest.raises(ConnectionRefusedError):
            await server._on_connect("sid-a", {}, None)
        with pytest.raises(ConnectionRefusedError):
            await server._on_connect("sid-b", {}, {"token": "garbage"})
        assert server.lifecycle.connections == {}

    @pytest.mark.asyncio
    async def test_auth_required_rejects_foreign_identify(self):
        server = make_server(SOCKET_REQUIRE_AUTH=True)
        await server._on_connect("sid-a", {}, {"token": create_access_token("u1")})

        await server._on_event("identify", "sid-a", "u2")
        assert len(server.presence) == 0

        await server._on_event("identify", "sid-a", "u1")
        assert server.presence.get_connection("u1") == "sid-a"

    @pytest.mark.asyncio
    async def test_shutdown_drops_connections(self):
        server = make_server()
        await server._on_connect("sid-a", {}, None)
        await server._on_event("identify", "sid-a", "u1")

        await server.shutdown()

        assert server.lifecycle.connections == {}
        assert len(server.presence) == 0
