from agreement_case_service.app.config import settings
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING
from typing import Optional

logger = logging.getLogger(__name__)

# Global client and db variables, managed by connect/close functions
client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None

async def connect_to_mongo():
    global client, db
    if client is not None and db is not None:
        logger.info("MongoDB connection already established.")
        return

    try:
        logger.info(f"Attempting to connect to MongoDB at {settings.MONGO_DETAILS}...")
        client = AsyncIOMotorClient(settings.MONGO_DETAILS, tz_aware=True)
        # Verify connection by pinging the admin database
        await client.admin.command('ping')
        db = client[settings.DB_NAME]
        logger.info(f"Successfully connected to MongoDB and database '{settings.DB_NAME}' is set.")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}", exc_info=True)
        client = None
        db = None
        raise ConnectionError(f"Failed to connect to MongoDB: {e}")

async def ensure_indexes(database: AsyncIOMotorDatabase):
    await database.cases.create_index([("id", ASCENDING)], unique=True)
    await database.cases.create_index([("owner", ASCENDING)])
    await database.cases.create_index([("invited_user", ASCENDING)])
    await database.notification_outbox.create_index([("status", ASCENDING), ("created_at", ASCENDING)])
    logger.info("MongoDB indexes ensured for cases and notification_outbox.")

def close_mongo_connection():
    global client, db
    if client is not None:
        client.close()
        client = None
        db = None
        logger.info("MongoDB connection closed.")

async def get_db():
    if db is None:
        logger.warning("Database not initialized. Attempting to connect via get_db().")
        await connect_to_mongo()

    if db is None:
        logger.error("Failed to get database instance in get_db.")
        raise ConnectionError("Database client is not available. Connection might have failed or was not established.")

    # The connection itself is owned by application startup/shutdown.
    yield db
