# Notification outbox: events are written here after the case commit, then relayed to Kafka
import logging
import datetime
from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase

from agreement_case_service.app.models.notification_outbox_db import NotificationOutboxDB, OutboxStatus

logger = logging.getLogger(__name__)


async def add_outbox_entries(db: AsyncIOMotorDatabase, entries: List[NotificationOutboxDB]) -> List[NotificationOutboxDB]:
    if not entries:
        return entries
    await db.notification_outbox.insert_many([entry.model_dump() for entry in entries])
    logger.info(f"{len(entries)} notification(s) added to outbox for case {entries[0].case_id}")
    return entries


async def mark_published(db: AsyncIOMotorDatabase, entry_id: str) -> None:
    await db.notification_outbox.update_one(
        {"id": entry_id},
        {
            "$set": {
                "status": OutboxStatus.PUBLISHED.value,
                "published_at": datetime.datetime.now(datetime.UTC),
                "last_error": None,
            },
            "$inc": {"attempts": 1},
        },
    )


async def record_failure(db: AsyncIOMotorDatabase, entry_id: str, error: str) -> None:
    await db.notification_outbox.update_one(
        {"id": entry_id},
        {"$set": {"last_error": error}, "$inc": {"attempts": 1}},
    )


async def list_pending(db: AsyncIOMotorDatabase, limit: int = 100) -> List[NotificationOutboxDB]:
    outbox_cursor = db.notification_outbox.find({"status": OutboxStatus.PENDING.value}).sort("created_at", 1).limit(limit)
    outbox_docs = await outbox_cursor.to_list(length=limit)
    return [NotificationOutboxDB(**doc) for doc in outbox_docs]
