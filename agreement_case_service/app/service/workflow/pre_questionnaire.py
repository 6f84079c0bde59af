# Pre-questionnaire & lawyer-selection gate
import datetime
import logging
from typing import Any, List, Optional

from agreement_case_service.app.models.case_db import CaseDB, Party, WorkflowStatus
from agreement_case_service.app.models.directory_db import LawyerDB
from agreement_case_service.app.service.access import Actor
from agreement_case_service.app.service.events.models import NotificationTrigger
from agreement_case_service.app.service.exceptions import (
    ConflictError, ForbiddenActionError, InvalidInputError, LawyerNotFoundError, PreconditionFailedError,
)
from agreement_case_service.app.service.workflow.intents import (
    NotificationIntent, to_case_managers, to_lawyer, to_parties, to_users,
)

logger = logging.getLogger(__name__)


def ensure_post_lock_stage(case: CaseDB, action: str) -> None:
    if not case.is_sealed():
        raise PreconditionFailedError(
            case.id, f"Cannot {action} until the case is fully locked with all seven steps submitted."
        )


def _require_party(case: CaseDB, actor: Actor) -> Party:
    party = case.party_of(actor.id)
    if party is None:
        raise ForbiddenActionError(case.id, "Only the owner or the invited user of the case can do this.")
    return Party(party)


def submit_pre_questionnaire(
    case: CaseDB,
    actor: Actor,
    answers: Any,
    now: datetime.datetime,
) -> List[NotificationIntent]:
    ensure_post_lock_stage(case, "submit the pre-questionnaire")
    party = _require_party(case, actor)
    if not isinstance(answers, list):
        raise InvalidInputError("Pre-questionnaire answers must be a list.")

    pq = case.pre_questionnaire(party)
    if pq.submitted and pq.locked:
        raise PreconditionFailedError(case.id, "Pre-questionnaire has already been submitted and is locked.")

    pq.answers = [str(answer) for answer in answers]
    pq.submitted = True
    pq.submitted_by = actor.id
    pq.submitted_at = now
    pq.locked = True
    pq.locked_by = actor.id
    pq.locked_at = now

    intents = [to_users(NotificationTrigger.PRE_QUESTIONNAIRE_SUBMITTED, [actor.id])]

    if case.both_pre_questionnaires_submitted():
        if case.workflow_status == WorkflowStatus.DRAFT:
            case.workflow_status = WorkflowStatus.CM
            logger.info(f"Both pre-questionnaires submitted for case {case.id}; status moved to CM.")
        intents.append(to_case_managers(NotificationTrigger.PRE_QUESTIONNAIRES_COMPLETED))
    return intents


def select_lawyer(
    case: CaseDB,
    actor: Actor,
    lawyer_id: str,
    lawyer: Optional[LawyerDB],
    now: datetime.datetime,
    force: bool = False,
    message: Optional[str] = None,
) -> List[NotificationIntent]:
    """Record the acting party's lawyer choice.

    Only the owner or the invited user can select, each for their own side. `force`
    is the selecting party's own override and is honoured for either party: it lifts
    only the rule that the two parties pick different lawyers. Every other gate
    (sealed case, both pre-questionnaires submitted, known lawyer) still applies.
    """
    ensure_post_lock_stage(case, "select a lawyer")
    party = _require_party(case, actor)
    if not case.both_pre_questionnaires_submitted():
        raise PreconditionFailedError(case.id, "Both parties must submit their pre-questionnaire before selecting a lawyer.")
    if lawyer is None:
        raise LawyerNotFoundError(lawyer_id)

    other = case.pre_questionnaire(case.other_party(party))
    if other.selected_lawyer == lawyer_id and not force:
        raise ConflictError(
            f"Lawyer '{lawyer_id}' is already selected by the other party on case '{case.id}'. "
            "Each party needs independent counsel."
        )

    pq = case.pre_questionnaire(party)
    pq.selected_lawyer = lawyer_id
    pq.selected_at = now
    logger.info(f"Lawyer {lawyer_id} selected by {actor.id} on case {case.id} (force={force}).")

    return [
        to_parties(NotificationTrigger.LAWYER_SELECTED, lawyer_name=lawyer.name),
        to_users(
            NotificationTrigger.LAWYER_INTRODUCTION,
            [actor.id],
            lawyer_name=lawyer.name,
            lawyer_email=lawyer.contact_email,
            lawyer_phone=lawyer.contact_phone,
        ),
        to_lawyer(
            NotificationTrigger.CLIENT_INTRODUCTION,
            lawyer_id,
            client_id=actor.id,
            client_message=message,
        ),
    ]


def is_lawyer_selected(case: CaseDB, lawyer_id: str) -> bool:
    return lawyer_id in case.selected_lawyers()
