# Read-only lookups into the user and lawyer directories
import logging
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from agreement_case_service.app.models.directory_db import LawyerDB, UserDB
from agreement_case_service.app.service.access import Role

logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncIOMotorDatabase, user_id: Optional[str]) -> Optional[UserDB]:
    if not user_id:
        return None
    user_doc = await db.users.find_one({"id": user_id})
    return UserDB(**user_doc) if user_doc else None


async def get_users_by_ids(db: AsyncIOMotorDatabase, user_ids: List[str]) -> List[UserDB]:
    ids = [u for u in user_ids if u]
    if not ids:
        return []
    users_cursor = db.users.find({"id": {"$in": ids}})
    users_docs = await users_cursor.to_list(length=len(ids))
    return [UserDB(**doc) for doc in users_docs]


async def list_users_by_role(db: AsyncIOMotorDatabase, role: Role, limit: int = 100) -> List[UserDB]:
    users_cursor = db.users.find({"role": Role(role).value}).limit(limit)
    users_docs = await users_cursor.to_list(length=limit)
    return [UserDB(**doc) for doc in users_docs]


async def get_lawyer_by_id(db: AsyncIOMotorDatabase, lawyer_id: Optional[str]) -> Optional[LawyerDB]:
    if not lawyer_id:
        return None
    lawyer_doc = await db.lawyers.find_one({"id": lawyer_id})
    if not lawyer_doc:
        logger.info(f"Lawyer {lawyer_id} not found in directory.")
        return None
    return LawyerDB(**lawyer_doc)
