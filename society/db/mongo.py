import logging
from datetime import timedelta
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from society.config import Settings
from society.utils.dates import utcnow

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """The key/value cache could not be reached or refused the operation."""


class MongoCache:
    """
    Small key/value cache on top of a single Mongo collection.

    Each document is ``{_id: key, value: ..., expires_at: datetime}``. A TTL
    index on ``expires_at`` removes stale documents eventually; reads also
    compare against the clock because the TTL monitor only runs once a minute.
    """

    def __init__(self, collection: AsyncIOMotorCollection, client: Optional[AsyncIOMotorClient] = None):
        self.collection = collection
        self.client = client

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index("expires_at", expireAfterSeconds=0)
        except PyMongoError as e:
            raise CacheError(str(e)) from e

    async def get(self, key: str) -> Optional[Any]:
        try:
            doc = await self.collection.find_one({"_id": key})
        except PyMongoError as e:
            raise CacheError(str(e)) from e

        if not doc:
            return None
        expires_at = doc.get("expires_at")
        if expires_at is not None and expires_at <= utcnow():
            return None
        return doc.get("value")

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        expires_at = utcnow() + timedelta(seconds=ttl_seconds) if ttl_seconds else None
        try:
            await self.collection.update_one(
                {"_id": key},
                {"$set": {"value": value, "expires_at": expires_at}},
                upsert=True,
            )
        except PyMongoError as e:
            raise CacheError(str(e)) from e

    async def delete(self, key: str) -> None:
        try:
            await self.collection.delete_one({"_id": key})
        except PyMongoError as e:
            raise CacheError(str(e)) from e

    def close(self) -> None:
        if self.client is not None:
            self.client.close()


def create_cache(settings: Settings) -> MongoCache:
    client = AsyncIOMotorClient(settings.MONGO_URL)
    collection = client[settings.MONGO_DB][settings.CACHE_COLLECTION]
    logger.info(f"Cache collection {settings.MONGO_DB}.{settings.CACHE_COLLECTION}")
    return MongoCache(collection, client)
