"""
Approval & workflow-status gate.

Approvals are independent flags. The quorum (both parties and a case manager)
is re-evaluated after every approval and moves the case to LAWYER once.
"""
import datetime
import logging
from typing import List, Optional

from agreement_case_service.app.models.case_db import CaseDB, Party, WorkflowStatus
from agreement_case_service.app.models.directory_db import UserDB
from agreement_case_service.app.service.access import Actor, is_privileged, require_privileged
from agreement_case_service.app.service.events.models import NotificationTrigger
from agreement_case_service.app.service.exceptions import (
    ForbiddenActionError, InvalidInputError, PreconditionFailedError, UserNotFoundError,
)
from agreement_case_service.app.service.workflow.intents import (
    NotificationIntent, to_case_managers, to_parties,
)
from agreement_case_service.app.service.workflow.locking import reopen_for_payment, seal_case

logger = logging.getLogger(__name__)


def _ensure_approvable(case: CaseDB) -> None:
    if not case.is_sealed():
        raise PreconditionFailedError(
            case.id, "Case must be fully locked with all steps submitted before it can be approved."
        )


def _evaluate_quorum(case: CaseDB, actor_id: str, now: datetime.datetime) -> List[NotificationIntent]:
    if not case.approval.has_quorum() or case.workflow_status == WorkflowStatus.LAWYER:
        return []
    case.workflow_status = WorkflowStatus.LAWYER
    seal_case(case, actor_id, now)
    logger.info(f"Approval quorum reached on case {case.id}; status moved to LAWYER.")
    return [to_parties(NotificationTrigger.PROCEED_TO_LAWYER)]


def approve_case_by_user(case: CaseDB, actor: Actor, now: datetime.datetime) -> List[NotificationIntent]:
    _ensure_approvable(case)
    party = case.party_of(actor.id)
    if party is None:
        raise ForbiddenActionError(case.id, "Only the owner or the invited user can approve as a party.")

    if Party(party) is Party.USER1:
        case.approval.user1_approved = True
        case.approval.user1_approved_at = now
    else:
        case.approval.user2_approved = True
        case.approval.user2_approved_at = now
    return _evaluate_quorum(case, actor.id, now)


def approve_case_by_lawyer(case: CaseDB, lawyer_id: str, now: datetime.datetime) -> List[NotificationIntent]:
    _ensure_approvable(case)
    if lawyer_id not in case.selected_lawyers():
        raise ForbiddenActionError(case.id, f"Lawyer '{lawyer_id}' has not been selected by either party.")

    case.approval.lawyer_approved = True
    case.approval.lawyer_approved_at = now
    case.approval.approved_lawyer = lawyer_id
    return _evaluate_quorum(case, lawyer_id, now)


def approve_case_by_manager(case: CaseDB, actor: Actor, now: datetime.datetime) -> List[NotificationIntent]:
    require_privileged(actor, "approve a case as case manager", case.id)
    _ensure_approvable(case)

    case.approval.case_manager_approved = True
    case.approval.case_manager_approved_at = now
    case.approval.approved_by = actor.id
    return _evaluate_quorum(case, actor.id, now)


def assign_case_manager(
    case: CaseDB,
    actor: Actor,
    manager_id: str,
    manager: Optional[UserDB],
    now: datetime.datetime,
) -> List[NotificationIntent]:
    require_privileged(actor, "assign a case manager", case.id)
    if manager is None:
        raise UserNotFoundError(manager_id)
    if not is_privileged(manager.role):
        raise InvalidInputError(f"User '{manager_id}' cannot be assigned as case manager.")

    case.assigned_case_manager = manager_id
    case.workflow_status = WorkflowStatus.CM
    return [
        to_parties(
            NotificationTrigger.CASE_MANAGER_ASSIGNED,
            manager_name=manager.display_name,
            manager_email=manager.email,
            manager_phone=manager.phone,
        )
    ]


def change_workflow_status(
    case: CaseDB,
    status: str,
    actor: Actor,
    now: datetime.datetime,
) -> List[NotificationIntent]:
    require_privileged(actor, "change the workflow status", case.id)
    try:
        target = WorkflowStatus(status)
    except ValueError:
        raise InvalidInputError(f"Unsupported workflow status '{status}'.")

    if target is WorkflowStatus.CM:
        case.workflow_status = target
        if not case.assigned_case_manager:
            case.assigned_case_manager = actor.id
        return [to_case_managers(NotificationTrigger.CASE_MOVED_TO_CM)]

    if target is WorkflowStatus.PAID:
        case.workflow_status = target
        reopen_for_payment(case, actor.id, now)
        return []

    if target is WorkflowStatus.LAWYER:
        case.workflow_status = target
        seal_case(case, actor.id, now)
        return [to_parties(NotificationTrigger.PROCEED_TO_LAWYER)]

    raise InvalidInputError(f"Workflow status cannot be set to '{target.value}' manually.")
