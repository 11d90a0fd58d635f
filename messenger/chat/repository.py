from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from ..shared.db.mongo import get_db
from ..shared.db.repository import MongoRepository, to_object_id
from .schemas import ChatInDB, MessageInDB


class ChatRepository(MongoRepository[ChatInDB]):
    """Repository for chat operations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, ChatInDB, "chats")

    async def find_between(self, user_id: str, other_id: str) -> Optional[ChatInDB]:
        """
        Get the chat both users take part in

        Args:
            user_id: One participant
            other_id: The other participant

        Returns:
            The chat if one exists, None otherwise
        """
        participants = [to_object_id(user_id), to_object_id(other_id)]
        if None in participants:
            return None
        return self.to_model(
            await self.collection.find_one(
                {"participants": {"$all": participants}}
            )
        )

    async def create(self, participant_ids: List[str]) -> ChatInDB:
        now = self.get_current_time()
        document = {
            "_id": self.generate_id(),
            "participants": [to_object_id(pid) for pid in participant_ids],
            "lastMessage": None,
            "createdAt": now,
            "updatedAt": now,
        }
        await self.collection.insert_one(document)
        return self.to_model(document)

    async def list_for_user(self, user_id: str) -> List[ChatInDB]:
        """Get the user's chats, most recently updated first"""
        object_id = to_object_id(user_id)
        if object_id is None:
            return []
        cursor = self.collection.find({"participants": object_id}).sort(
            "updatedAt", -1
        )
        return [self.to_model(doc) async for doc in cursor]

    async def set_last_message(self, chat_id: str, message_id: str) -> bool:
        result = await self.collection.update_one(
            {"_id": to_object_id(chat_id)},
            {
                "$set": {
                    "lastMessage": to_object_id(message_id),
                    "updatedAt": self.get_current_time(),
                }
            },
        )
        return result.matched_count > 0


class MessageRepository(MongoRepository[MessageInDB]):
    """Repository for message operations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, MessageInDB, "messages")

    async def create(self, chat_id: str, sender_id: str, text: str) -> MessageInDB:
        now = self.get_current_time()
        document = {
            "_id": self.generate_id(),
            "chatId": to_object_id(chat_id),
            "sender": to_object_id(sender_id),
            "text": text,
            "createdAt": now,
            "updatedAt": now,
        }
        await self.collection.insert_one(document)
        return self.to_model(document)

    async def get_many(self, ids: List[str]) -> List[MessageInDB]:
        object_ids = [oid for oid in map(to_object_id, ids) if oid is not None]
        if not object_ids:
            return []
        cursor = self.collection.find({"_id": {"$in": object_ids}})
        return [self.to_model(doc) async for doc in cursor]

    async def list_for_chat(self, chat_id: str) -> List[MessageInDB]:
        """Get the chat's messages, oldest first"""
        object_id = to_object_id(chat_id)
        if object_id is None:
            return []
        cursor = self.collection.find({"chatId": object_id}).sort("createdAt", 1)
        return [self.to_model(doc) async for doc in cursor]

    async def delete_for_chat(self, chat_id: str) -> int:
        object_id = to_object_id(chat_id)
        if object_id is None:
            return 0
        result = await self.collection.delete_many({"chatId": object_id})
        return result.deleted_count


def get_chat_repository() -> ChatRepository:
    return ChatRepository(get_db())


def get_message_repository() -> MessageRepository:
    return MessageRepository(get_db())
