import logging
from typing import Dict, Iterable, List, Optional

from ..shared.db.exceptions import RecordNotFound
from ..users.repository import UserRepository
from ..users.schemas import SenderSchema, UserInDB, UserSchema
from .repository import ChatRepository, MessageRepository
from .schemas import ChatInDB, ChatResponse, MessageInDB, MessageResponse

logger = logging.getLogger(__name__)


class NotParticipant(Exception):
    """Raised when a user acts on a chat they are not part of."""

    def __init__(self, chat_id: str, user_id: str):
        self.chat_id = chat_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a participant of chat {chat_id}")


def _sender_summary(user: Optional[UserInDB]) -> Optional[SenderSchema]:
    if user is None:
        return None
    return SenderSchema(
        id=user.id,
        username=user.username,
        unique_id=user.unique_id,
        avatar=user.avatar,
    )


class MessageService:
    """Persists messages and renders them with their sender populated."""

    def __init__(
        self,
        chats: ChatRepository,
        messages: MessageRepository,
        users: UserRepository,
    ):
        self.chats = chats
        self.messages = messages
        self.users = users

    async def render(
        self,
        messages: Iterable[MessageInDB],
        senders: Optional[Dict[str, UserInDB]] = None,
    ) -> List[MessageResponse]:
        messages = list(messages)
        if senders is None:
            found = await self.users.get_many(list({m.sender for m in messages}))
            senders = {user.id: user for user in found}
        return [
            MessageResponse(
                id=message.id,
                chat_id=message.chat_id,
                sender=_sender_summary(senders.get(message.sender)),
                text=message.text,
                created_at=message.created_at,
                updated_at=message.updated_at,
            )
            for message in messages
        ]

    async def send(self, chat_id: str, sender: UserInDB, text: str) -> MessageResponse:
        """
        Store a message and make it the chat's last message

        Raises:
            RecordNotFound: If the chat does not exist
            NotParticipant: If the sender is not part of the chat
        """
        chat = await self.chats.get(chat_id)
        if chat is None:
            raise RecordNotFound("chats", chat_id)
        if not chat.has_participant(sender.id):
            raise NotParticipant(chat_id, sender.id)

        message = await self.messages.create(chat.id, sender.id, text)
        await self.chats.set_last_message(chat.id, message.id)
        logger.info(f"Message {message.id} stored in chat {chat.id}")

        rendered = await self.render([message], {sender.id: sender})
        return rendered[0]

    async def history(self, chat_id: str, user_id: str) -> List[MessageResponse]:
        """
        Get a chat's messages, oldest first

        Raises:
            RecordNotFound: If the chat does not exist
            NotParticipant: If the user is not part of the chat
        """
        chat = await self.chats.get(chat_id)
        if chat is None:
            raise RecordNotFound("chats", chat_id)
        if not chat.has_participant(user_id):
            raise NotParticipant(chat_id, user_id)
        return await self.render(await self.messages.list_for_chat(chat.id))


class ChatService:
    """1-to-1 chat lookup, creation and deletion."""

    def __init__(
        self,
        chats: ChatRepository,
        messages: MessageRepository,
        users: UserRepository,
    ):
        self.chats = chats
        self.messages = messages
        self.users = users
        self.message_service = MessageService(chats, messages, users)

    async def render(self, chats: Iterable[ChatInDB]) -> List[ChatResponse]:
        chats = list(chats)
        last_messages = await self.messages.get_many(
            [chat.last_message for chat in chats if chat.last_message]
        )

        user_ids = {pid for chat in chats for pid in chat.participants}
        user_ids.update(message.sender for message in last_messages)
        users = {user.id: user for user in await self.users.get_many(list(user_ids))}

        rendered_messages = {
            message.id: message
            for message in await self.message_service.render(last_messages, users)
        }

        return [
            ChatResponse(
                id=chat.id,
                participants=[
                    UserSchema.model_validate(users[pid].model_dump(by_alias=True))
                    for pid in chat.participants
                    if pid in users
                ],
                last_message=rendered_messages.get(chat.last_message or ""),
                created_at=chat.created_at,
                updated_at=chat.updated_at,
            )
            for chat in chats
        ]

    async def access(self, user_id: str, other_id: str) -> ChatResponse:
        """Get the chat between two users, creating it on first contact"""
        chat = await self.chats.find_between(user_id, other_id)
        if chat is None:
            if await self.users.get(other_id) is None:
                raise RecordNotFound("users", other_id)
            chat = await self.chats.create([user_id, other_id])
            logger.info(f"Created chat {chat.id} between {user_id} and {other_id}")
        return (await self.render([chat]))[0]

    async def list_for_user(self, user_id: str) -> List[ChatResponse]:
        return await self.render(await self.chats.list_for_user(user_id))

    async def delete(self, chat_id: str, user_id: str) -> None:
        """
        Delete a chat and every message in it

        Raises:
            RecordNotFound: If the chat does not exist
            NotParticipant: If the user is not part of the chat
        """
        chat = await self.chats.get(chat_id)
        if chat is None:
            raise RecordNotFound("chats", chat_id)
        if not chat.has_participant(user_id):
            raise NotParticipant(chat_id, user_id)

        deleted = await self.messages.delete_for_chat(chat.id)
        await self.chats.delete(chat.id)
        logger.info(f"Deleted chat {chat.id} and {deleted} messages")
