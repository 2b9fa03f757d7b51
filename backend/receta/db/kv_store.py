import logging
from typing import Optional, List, Dict
from datetime import datetime
from pymongo.asynchronous.database import AsyncDatabase

logger = logging.getLogger(__name__)


MAX_KEY_LENGTH = 255


def _validate_key(key: str) -> None:
    if not key or not isinstance(key, str):
        raise ValueError("key must be a non-empty string")
    if len(key) > MAX_KEY_LENGTH:
        raise ValueError(f"key must be at most {MAX_KEY_LENGTH} characters")


class KeyValueBackend:
    """String key to string value storage. Every collection is one value."""

    async def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def multi_remove(self, keys: List[str]) -> None:
        raise NotImplementedError

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryKeyValueBackend(KeyValueBackend):

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        _validate_key(key)
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        _validate_key(key)
        if not isinstance(value, str):
            raise ValueError("value must be a string")
        self._items[key] = value

    async def multi_remove(self, keys: List[str]) -> None:
        for key in keys:
            self._items.pop(key, None)


class MongoKeyValueBackend(KeyValueBackend):

    def __init__(self, db: AsyncDatabase, collection_name: str = "kv_store"):
        self.db = db
        self.collection = db[collection_name]

#------This Function reads a value by key---------
    async def get_item(self, key: str) -> Optional[str]:
        _validate_key(key)
        try:
            doc = await self.collection.find_one({"_id": key})
            return doc["value"] if doc else None
        except Exception as e:
            logger.error(f"Failed to read key {key}: {e}")
            raise

#------This Function writes a value by key---------
    async def set_item(self, key: str, value: str) -> None:
        _validate_key(key)
        if not isinstance(value, str):
            raise ValueError("value must be a string")
        try:
            await self.collection.update_one(
                {"_id": key},
                {"$set": {"value": value, "updated_at": datetime.now()}},
                upsert=True,
            )
        except Exception as e:
            logger.error(f"Failed to write key {key}: {e}")
            raise

#------This Function removes several keys---------
    async def multi_remove(self, keys: List[str]) -> None:
        if not keys:
            return
        try:
            await self.collection.delete_many({"_id": {"$in": list(keys)}})
        except Exception as e:
            logger.error(f"Failed to remove keys {keys}: {e}")
            raise

    async def ping(self) -> bool:
        try:
            await self.db.client.admin.command('ping')
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False
