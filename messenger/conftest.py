"""
Shared fixtures: in-memory stand-ins for the Mongo repositories, a recording
transport for the realtime layer and a TestClient wired to both.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-chars")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("SMTP_USER", "")

from datetime import UTC, datetime, timedelta  # noqa: E402
from typing import Any, Dict, List, Optional, Set, Tuple  # noqa: E402

import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from messenger.chat.repository import (  # noqa: E402
    get_chat_repository,
    get_message_repository,
)
from messenger.chat.schemas import ChatInDB, MessageInDB  # noqa: E402
from messenger.realtime.lifecycle import ConnectionLifecycle  # noqa: E402
from messenger.realtime.relay import Transport  # noqa: E402
from messenger.shared.db.exceptions import DuplicateRecord  # noqa: E402
from messenger.users.repository import get_user_repository  # noqa: E402
from messenger.users.schemas import UserInDB  # noqa: E402


class Clock:
    """Strictly increasing timestamps so ordering never ties."""

    def __init__(self):
        self.current = datetime(2024, 1, 1, tzinfo=UTC)

    def now(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class InMemoryUserRepository:
    def __init__(self, clock: Clock):
        self.clock = clock
        self.documents: Dict[str, UserInDB] = {}

    async def get(self, id: str) -> Optional[UserInDB]:
        return self.documents.get(id)

    async def get_by_email(self, email: str) -> Optional[UserInDB]:
        for user in self.documents.values():
            if user.email == email.lower():
                return user
        return None

    async def get_many(self, ids: List[str]) -> List[UserInDB]:
        return [self.documents[i] for i in ids if i in self.documents]

    async def exists(self, email: str, unique_id: Optional[str]) -> bool:
        handle = unique_id or email.lower()
        return any(
            user.email == email.lower() or user.unique_id == handle
            for user in self.documents.values()
        )

    async def create(
        self,
        username: str,
        email: str,
        hashed_password: str,
        unique_id: Optional[str] = None,
    ) -> UserInDB:
        # Same unique indexes as the users collection
        handle = unique_id or email.lower()
        for existing in self.documents.values():
            if existing.email == email.lower() or existing.unique_id == handle:
                raise DuplicateRecord("users", handle)

        now = self.clock.now()
        user = UserInDB(
            id=str(ObjectId()),
            username=username,
            email=email.lower(),
            password=hashed_password,
            unique_id=unique_id or email.lower(),
            created_at=now,
            updated_at=now,
        )
        self.documents[user.id] = user
        return user

    async def list_except(self, user_id: str) -> List[UserInDB]:
        return [u for u in self.documents.values() if u.id != user_id]

    async def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Optional[UserInDB]:
        user = self.documents.get(user_id)
        if user is None:
            return None
        update: Dict[str, Any] = {"updated_at": self.clock.now()}
        if username:
            update["username"] = username
        if avatar:
            update["avatar"] = avatar
        self.documents[user_id] = user.model_copy(update=update)
        return self.documents[user_id]

    async def set_reset_token(
        self, user_id: str, token_hash: str, expires_at: datetime
    ) -> None:
        self.documents[user_id] = self.documents[user_id].model_copy(
            update={
                "reset_password_token": token_hash,
                "reset_password_expires": expires_at,
            }
        )

    async def get_by_reset_token(
        self, token_hash: str, now: datetime
    ) -> Optional[UserInDB]:
        for user in self.documents.values():
            if (
                user.reset_password_token == token_hash
                and user.reset_password_expires is not None
                and user.reset_password_expires > now
            ):
                return user
        return None

    async def reset_password(self, user_id: str, hashed_password: str) -> None:
        self.documents[user_id] = self.documents[user_id].model_copy(
            update={
                "password": hashed_password,
                "reset_password_token": None,
                "reset_password_expires": None,
            }
        )


class InMemoryChatRepository:
    def __init__(self, clock: Clock):
        self.clock = clock
        self.documents: Dict[str, ChatInDB] = {}

    async def get(self, id: str) -> Optional[ChatInDB]:
        return self.documents.get(id)

    async def delete(self, id: str) -> bool:
        return self.documents.pop(id, None) is not None

    async def find_between(self, user_id: str, other_id: str) -> Optional[ChatInDB]:
        for chat in self.documents.values():
            if chat.has_participant(user_id) and chat.has_participant(other_id):
                return chat
        return None

    async def create(self, participant_ids: List[str]) -> ChatInDB:
        now = self.clock.now()
        chat = ChatInDB(
            id=str(ObjectId()),
            participants=list(participant_ids),
            created_at=now,
            updated_at=now,
        )
        self.documents[chat.id] = chat
        return chat

    async def list_for_user(self, user_id: str) -> List[ChatInDB]:
        chats = [c for c in self.documents.values() if c.has_participant(user_id)]
        return sorted(chats, key=lambda c: c.updated_at, reverse=True)

    async def set_last_message(self, chat_id: str, message_id: str) -> bool:
        chat = self.documents.get(chat_id)
        if chat is None:
            return False
        self.documents[chat_id] = chat.model_copy(
            update={"last_message": message_id, "updated_at": self.clock.now()}
        )
        return True


class InMemoryMessageRepository:
    def __init__(self, clock: Clock):
        self.clock = clock
        self.documents: Dict[str, MessageInDB] = {}

    async def get(self, id: str) -> Optional[MessageInDB]:
        return self.documents.get(id)

    async def get_many(self, ids: List[str]) -> List[MessageInDB]:
        return [self.documents[i] for i in ids if i in self.documents]

    async def create(self, chat_id: str, sender_id: str, text: str) -> MessageInDB:
        now = self.clock.now()
        message = MessageInDB(
            id=str(ObjectId()),
            chat_id=chat_id,
            sender=sender_id,
            text=text,
            created_at=now,
            updated_at=now,
        )
        self.documents[message.id] = message
        return message

    async def list_for_chat(self, chat_id: str) -> List[MessageInDB]:
        messages = [m for m in self.documents.values() if m.chat_id == chat_id]
        return sorted(messages, key=lambda m: m.created_at)

    async def delete_for_chat(self, chat_id: str) -> int:
        doomed = [m.id for m in self.documents.values() if m.chat_id == chat_id]
        for message_id in doomed:
            del self.documents[message_id]
        return len(doomed)


class RecordingTransport(Transport):
    """Keeps every outbound event; connections in `failing` raise on send."""

    def __init__(self):
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []
        self.broadcasts: List[Tuple[str, Dict[str, Any]]] = []
        self.failing: Set[str] = set()

    async def send(self, connection_id: str, event: str, data: Dict[str, Any]) -> None:
        if connection_id in self.failing:
            raise ConnectionError(f"{connection_id} is gone")
        self.sent.append((connection_id, event, data))

    async def broadcast(self, event: str, data: Dict[str, Any]) -> None:
        self.broadcasts.append((event, data))

    def received(self, connection_id: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [(e, d) for c, e, d in self.sent if c == connection_id]

    def reset(self) -> None:
        self.sent.clear()
        self.broadcasts.clear()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def user_repo(clock):
    return InMemoryUserRepository(clock)


@pytest.fixture
def chat_repo(clock):
    return InMemoryChatRepository(clock)


@pytest.fixture
def message_repo(clock):
    return InMemoryMessageRepository(clock)


@pytest.fixture
def client(user_repo, chat_repo, message_repo):
    """TestClient over the REST app; the lifespan (and Mongo) is never started."""
    from messenger.main import fastapi_app

    fastapi_app.dependency_overrides[get_user_repository] = lambda: user_repo
    fastapi_app.dependency_overrides[get_chat_repository] = lambda: chat_repo
    fastapi_app.dependency_overrides[get_message_repository] = lambda: message_repo
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user through the API and return the auth response body."""

    def _register(username: str, email: Optional[str] = None, password: str = "secret123"):
        response = client.post(
            "/api/auth/register",
            json={
                "username": username,
                "email": email or f"{username}@example.com",
                "password": password,
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def auth_headers():
    def _headers(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def lifecycle(transport):
    return ConnectionLifecycle(transport)
