from datetime import datetime
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from ..shared.db.exceptions import DuplicateRecord
from ..shared.db.mongo import get_db
from ..shared.db.repository import MongoRepository, to_object_id
from .schemas import UserInDB


class UserRepository(MongoRepository[UserInDB]):
    """Repository for user operations"""

    def __init__(self, db: AsyncIOMotorDatabase):
        super().__init__(db, UserInDB, "users")

    async def get_by_email(self, email: str) -> Optional[UserInDB]:
        return self.to_model(
            await self.collection.find_one({"email": email.lower()})
        )

    async def get_many(self, ids: List[str]) -> List[UserInDB]:
        """
        Get every user whose id is in ids

        Args:
            ids: User IDs, unknown or malformed ones are skipped

        Returns:
            The users found, in no particular order
        """
        object_ids = [oid for oid in map(to_object_id, ids) if oid is not None]
        if not object_ids:
            return []
        cursor = self.collection.find({"_id": {"$in": object_ids}})
        return [self.to_model(doc) async for doc in cursor]

    async def exists(self, email: str, unique_id: Optional[str]) -> bool:
        """Check whether the email or the unique id it would get is taken"""
        clauses = [
            {"email": email.lower()},
            {"uniqueId": unique_id or email.lower()},
        ]
        return await self.collection.find_one({"$or": clauses}) is not None

    async def create(
        self,
        username: str,
        email: str,
        hashed_password: str,
        unique_id: Optional[str] = None,
    ) -> UserInDB:
        """
        Create a new user

        Args:
            username: Display name
            email: Login email, stored lower-cased
            hashed_password: Password hash, never the plain password
            unique_id: Public handle, defaults to the email

        Returns:
            The created user

        Raises:
            DuplicateRecord: If the email or unique id is already taken
        """
        now = self.get_current_time()
        document = {
            "_id": self.generate_id(),
            "username": username,
            "email": email.lower(),
            "password": hashed_password,
            "uniqueId": unique_id or email.lower(),
            "avatar": "",
            "createdAt": now,
            "updatedAt": now,
        }
        try:
            await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            raise DuplicateRecord("users", document["uniqueId"]) from e
        return self.to_model(document)

    async def list_except(self, user_id: str) -> List[UserInDB]:
        """Get all users except the given one"""
        query = {}
        object_id = to_object_id(user_id)
        if object_id is not None:
            query = {"_id": {"$ne": object_id}}
        return [self.to_model(doc) async for doc in self.collection.find(query)]

    async def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Optional[UserInDB]:
        """
        Update the editable profile fields of a user

        Returns:
            The updated user if found, None otherwise
        """
        object_id = to_object_id(user_id)
        if object_id is None:
            return None

        update = {"updatedAt": self.get_current_time()}
        if username:
            update["username"] = username
        if avatar:
            update["avatar"] = avatar

        result = await self.collection.update_one(
            {"_id": object_id}, {"$set": update}
        )
        if result.matched_count == 0:
            return None
        return await self.get(user_id)

    async def set_reset_token(
        self, user_id: str, token_hash: str, expires_at: datetime
    ) -> None:
        await self.collection.update_one(
            {"_id": to_object_id(user_id)},
            {
                "$set": {
                    "resetPasswordToken": token_hash,
                    "resetPasswordExpires": expires_at,
                }
            },
        )

    async def get_by_reset_token(
        self, token_hash: str, now: datetime
    ) -> Optional[UserInDB]:
        """Find the user holding an unexpired reset token"""
        return self.to_model(
            await self.collection.find_one(
                {
                    "resetPasswordToken": token_hash,
                    "resetPasswordExpires": {"$gt": now},
                }
            )
        )

    async def reset_password(self, user_id: str, hashed_password: str) -> None:
        """Store a new password hash and clear any pending reset token"""
        await self.collection.update_one(
            {"_id": to_object_id(user_id)},
            {
                "$set": {
                    "password": hashed_password,
                    "updatedAt": self.get_current_time(),
                },
                "$unset": {
                    "resetPasswordToken": "",
                    "resetPasswordExpires": "",
                },
            },
        )


def get_user_repository() -> UserRepository:
    return UserRepository(get_db())
