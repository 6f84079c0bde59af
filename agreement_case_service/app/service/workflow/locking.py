# Full-case lock: sealing after step 7 and the privileged unlock / reopen paths
import datetime
import logging
from typing import List

from agreement_case_service.app.models.case_db import CaseDB, FINAL_STEP
from agreement_case_service.app.service.access import Actor, require_privileged
from agreement_case_service.app.service.exceptions import PreconditionFailedError
from agreement_case_service.app.service.workflow.intents import NotificationIntent

logger = logging.getLogger(__name__)


def seal_case(case: CaseDB, actor_id: str, now: datetime.datetime) -> None:
    """Set the case-wide lock and re-lock all seven steps in the same mutation.

    Re-locking steps that are already locked only refreshes their audit fields.
    """
    case.fully_locked = True
    case.fully_locked_by = actor_id
    case.fully_locked_at = now
    for step in case.steps:
        step.status.lock(actor_id, now)
    logger.info(f"Case {case.id} sealed by {actor_id}.")


def clear_full_lock(case: CaseDB) -> None:
    case.fully_locked = False
    case.fully_locked_by = None
    case.fully_locked_at = None


def release_all_locks(case: CaseDB, actor_id: str, now: datetime.datetime) -> None:
    clear_full_lock(case)
    for step in case.steps:
        step.status.unlock(actor_id, now)


def unlock_case(case: CaseDB, actor: Actor, now: datetime.datetime) -> List[NotificationIntent]:
    require_privileged(actor, "unlock a case", case.id)

    final_status = case.step_status(FINAL_STEP)
    if not (case.fully_locked or final_status.submitted or final_status.submitted_at):
        raise PreconditionFailedError(
            case.id, "Case is not locked and step 7 has not been submitted; nothing to unlock."
        )

    release_all_locks(case, actor.id, now)
    case.pre_questionnaire_user1.clear_lock()
    case.pre_questionnaire_user2.clear_lock()
    logger.info(f"Case {case.id} unlocked by {actor.id}.")
    return []


def reopen_for_payment(case: CaseDB, actor_id: str, now: datetime.datetime) -> None:
    # Unlike unlock_case this also resets pre-questionnaire progress; step data and step submissions stay.
    release_all_locks(case, actor_id, now)
    for pq in (case.pre_questionnaire_user1, case.pre_questionnaire_user2):
        pq.submitted = False
        pq.clear_lock()
    logger.info(f"Case {case.id} reopened for corrections after payment by {actor_id}.")
