# Persistence for the case aggregate (one document per case, compare-and-swap on `version`)
import logging
import datetime
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from agreement_case_service.app.models.case_db import CaseDB
from agreement_case_service.app.service.exceptions import CaseNotFoundError, ConcurrencyConflictError

logger = logging.getLogger(__name__)


async def insert_case(db: AsyncIOMotorDatabase, case: CaseDB) -> CaseDB:
    await db.cases.insert_one(case.model_dump())
    logger.info(f"Case inserted with ID: {case.id} for owner {case.owner}")
    return case


async def get_case_by_id(db: AsyncIOMotorDatabase, case_id: str) -> Optional[CaseDB]:
    case_doc = await db.cases.find_one({"id": case_id})
    return CaseDB(**case_doc) if case_doc else None


async def load_case(db: AsyncIOMotorDatabase, case_id: str) -> CaseDB:
    case = await get_case_by_id(db, case_id) if case_id else None
    if case is None:
        raise CaseNotFoundError(case_id)
    return case


async def list_cases_for_user(db: AsyncIOMotorDatabase, user_id: str, limit: int = 50, skip: int = 0) -> List[CaseDB]:
    """Cases where the user is either the owner or the invited partner, newest first."""
    query = {"$or": [{"owner": user_id}, {"invited_user": user_id}]}
    cases_cursor = db.cases.find(query).sort("created_at", -1).skip(skip).limit(limit)
    cases_docs = await cases_cursor.to_list(length=limit)
    return [CaseDB(**doc) for doc in cases_docs]


async def list_all_cases(db: AsyncIOMotorDatabase, limit: int = 50, skip: int = 0) -> List[CaseDB]:
    cases_cursor = db.cases.find().sort("created_at", -1).skip(skip).limit(limit)
    cases_docs = await cases_cursor.to_list(length=limit)
    return [CaseDB(**doc) for doc in cases_docs]


async def replace_case_if_version(db: AsyncIOMotorDatabase, case: CaseDB, expected_version: int) -> CaseDB:
    """Write the whole case document only if nobody else bumped its version meanwhile.

    On success `case.version` is `expected_version + 1`. Raises ConcurrencyConflictError
    when the stored version moved on.
    """
    now = datetime.datetime.now(datetime.UTC)
    case_dict = case.model_dump()
    case_dict["version"] = expected_version + 1
    case_dict["updated_at"] = now

    result = await db.cases.replace_one({"id": case.id, "version": expected_version}, case_dict)
    if result.matched_count == 0:
        current = await db.cases.find_one({"id": case.id}, {"version": 1})
        if current is None:
            raise CaseNotFoundError(case.id)
        logger.warning(
            f"Version conflict writing case {case.id}: expected {expected_version}, found {current.get('version')}"
        )
        raise ConcurrencyConflictError(case.id, expected_version, current.get("version"))

    case.version = expected_version + 1
    case.updated_at = now
    logger.debug(f"Case {case.id} stored at version {case.version}")
    return case
