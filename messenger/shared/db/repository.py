from datetime import UTC, datetime
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pydantic import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Convert a string id to an ObjectId, or None if it is not one."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def stringify_ids(data: Any) -> Any:
    """Recursively replace ObjectId values with their string form."""
    if isinstance(data, ObjectId):
        return str(data)
    if isinstance(data, list):
        return [stringify_ids(item) for item in data]
    if isinstance(data, dict):
        return {key: stringify_ids(value) for key, value in data.items()}
    return data


class MongoRepository(Generic[ModelType]):
    """Base repository class for MongoDB collections"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        model: Type[ModelType],
        collection_name: str,
    ):
        """
        Initialize the repository

        Args:
            db: The database handle
            model: The model documents are loaded into
            collection_name: The name of the collection in the database
        """
        self.db = db
        self.model = model
        self.collection_name = collection_name

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.db[self.collection_name]

    def to_model(self, document: Optional[Dict[str, Any]]) -> Optional[ModelType]:
        if not document:
            return None
        return self.model.model_validate(stringify_ids(document))

    async def get(self, id: str) -> Optional[ModelType]:
        """
        Get a single record by ID

        Args:
            id: The ID of the record

        Returns:
            The record if found, None otherwise
        """
        object_id = to_object_id(id)
        if object_id is None:
            return None
        return self.to_model(await self.collection.find_one({"_id": object_id}))

    async def delete(self, id: str) -> bool:
        """
        Delete a record

        Args:
            id: The ID of the record to delete

        Returns:
            True if the record was deleted, False otherwise
        """
        object_id = to_object_id(id)
        if object_id is None:
            return False
        result = await self.collection.delete_one({"_id": object_id})
        return result.deleted_count > 0

    def generate_id(self) -> ObjectId:
        return ObjectId()

    def get_current_time(self) -> datetime:
        return datetime.now(UTC)
