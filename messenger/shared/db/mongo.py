import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from ...core.config import get_settings
from .exceptions import DatabaseUnavailable

logger = logging.getLogger(__name__)

client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None


async def init_mongo() -> None:
    """Initialize MongoDB connection and the indexes the services rely on."""
    global client, db
    settings = get_settings()
    try:
        logger.info("Connecting to MongoDB...")
        client = AsyncIOMotorClient(settings.MONGO_URI)
        database = client[settings.MONGO_DB_NAME]
        # Verify connection
        await database.command("ping")

        await database.users.create_index("email", unique=True)
        await database.users.create_index("uniqueId", unique=True)
        await database.chats.create_index("participants")
        await database.messages.create_index([("chatId", 1), ("createdAt", 1)])

        db = database
        logger.info("Successfully connected to MongoDB")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}")
        if client is not None:
            client.close()
            client = None
        raise


async def close_mongo_connection() -> None:
    """Close MongoDB connection."""
    global client, db
    if client is not None:
        client.close()
        client = None
        db = None
        logger.info("MongoDB connection closed")


def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    if db is None:
        raise DatabaseUnavailable("MongoDB not initialized")
    return db
