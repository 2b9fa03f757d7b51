import logging
import asyncio
from typing import Optional
from pymongo import AsyncMongoClient
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from receta.core.config import Settings, settings as default_settings
from receta.db.kv_store import KeyValueBackend, MemoryKeyValueBackend, MongoKeyValueBackend

logger = logging.getLogger(__name__)


MAX_RETRIES = 3
RETRY_DELAY = 2
CONNECTION_TIMEOUT = 10
MAX_POOL_SIZE = 50
MIN_POOL_SIZE = 1


#------This Function opens the configured key-value backend---------
async def connect_db(config: Optional[Settings] = None) -> KeyValueBackend:
    config = config or default_settings

    if config.storage_backend == "memory":
        logger.info("Using in-memory storage backend")
        return MemoryKeyValueBackend()

    client = None
    retry_count = 0
    last_error = None

    while retry_count < MAX_RETRIES:
        try:
            logger.info(f"Attempting database connection (attempt {retry_count + 1}/{MAX_RETRIES})...")

            client = AsyncMongoClient(
                config.mongodb_uri,
                maxPoolSize=MAX_POOL_SIZE,
                minPoolSize=MIN_POOL_SIZE,
                connectTimeoutMS=CONNECTION_TIMEOUT * 1000,
                serverSelectionTimeoutMS=CONNECTION_TIMEOUT * 1000,
                retryWrites=True,
            )

            await client.admin.command('ping')
            logger.info("Database connection established successfully")
            break

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            last_error = e
            retry_count += 1
            logger.warning(f"Database connection attempt {retry_count} failed: {str(e)}")
            if client is not None:
                await client.close()
                client = None

            if retry_count < MAX_RETRIES:
                await asyncio.sleep(RETRY_DELAY * retry_count)
            else:
                logger.error(f"Failed to connect to database after {MAX_RETRIES} attempts")
                raise RuntimeError(f"Failed to connect to database: {str(last_error)}")

    backend = MongoKeyValueBackend(client[config.db_name])
    logger.info("Database initialization completed")
    return backend


#------This Function closes the backend connection---------
async def close_db(backend: Optional[KeyValueBackend]):
    if backend is None:
        return
    try:
        if isinstance(backend, MongoKeyValueBackend):
            await backend.db.client.close()
        else:
            await backend.close()
        logger.info("Database connection closed")
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")


#------This Function checks the storage health status---------
async def check_db_health(backend: Optional[KeyValueBackend], config: Optional[Settings] = None) -> dict:
    config = config or default_settings
    if backend is None:
        return {"status": "unhealthy", "error": "Database not initialized"}
    try:
        if await backend.ping():
            return {"status": "healthy", "backend": config.storage_backend, "database": config.db_name}
        return {"status": "unhealthy", "backend": config.storage_backend, "error": "Ping failed"}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
