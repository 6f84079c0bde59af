# Step Update Engine
import datetime
import logging
from typing import Any, Dict, List

from agreement_case_service.app.models.case_db import (
    CaseDB, Party, WorkflowStatus, FINAL_STEP, REQUIRED_STEPS, STEP_NUMBERS,
)
from agreement_case_service.app.models.step_templates import merge_with_template
from agreement_case_service.app.service.access import Actor, EndUserType, require_privileged
from agreement_case_service.app.service.events.models import NotificationTrigger
from agreement_case_service.app.service.exceptions import (
    ForbiddenActionError, InvalidInputError, PreconditionFailedError,
)
from agreement_case_service.app.service.workflow.intents import (
    NotificationIntent, to_case_managers, to_parties,
)
from agreement_case_service.app.service.workflow.locking import clear_full_lock, seal_case

logger = logging.getLogger(__name__)

PARTY_LABELS = {Party.USER1: "owner", Party.USER2: "invited user"}


def validate_step_number(step_number: int) -> None:
    if step_number not in STEP_NUMBERS:
        raise InvalidInputError(f"Invalid step number {step_number}. Steps are numbered 1 to 7.")


def _check_step_eligibility(case: CaseDB, step_number: int, actor: Actor) -> None:
    if actor.is_privileged:
        return
    party = case.party_of(actor.id)
    if party is None:
        raise ForbiddenActionError(case.id, "You are not a party to this case.")
    if actor.end_user_type and EndUserType(actor.end_user_type).value != Party(party).value:
        raise ForbiddenActionError(
            case.id, f"Declared user type '{EndUserType(actor.end_user_type).value}' does not match your role on this case."
        )
    if step_number not in REQUIRED_STEPS[Party(party)]:
        raise ForbiddenActionError(
            case.id, f"The {PARTY_LABELS[Party(party)]} is not allowed to submit step {step_number}."
        )


def _check_not_restricted(case: CaseDB, actor: Actor) -> None:
    if actor.is_privileged:
        return
    if case.workflow_status == WorkflowStatus.CM and case.assigned_case_manager != actor.id:
        raise ForbiddenActionError(case.id, "Case is under case-manager review; only the assigned case manager can edit it.")
    if case.fully_locked:
        raise ForbiddenActionError(case.id, "Case is fully locked and can no longer be edited.")


def _missing_for_final_submission(case: CaseDB) -> Dict[Party, List[int]]:
    # The step 7 being submitted right now counts as done.
    return {
        party: [n for n in steps if n != FINAL_STEP]
        for party, steps in case.missing_steps().items()
    }


def _ensure_final_submission_allowed(case: CaseDB) -> None:
    problems = []
    if not case.invited_user:
        problems.append("no invited user has joined the case")

    missing = _missing_for_final_submission(case)
    for party, steps in missing.items():
        if steps:
            problems.append(f"{PARTY_LABELS[party]} missing steps: {', '.join(str(n) for n in steps)}")

    if problems:
        raise PreconditionFailedError(
            case.id,
            "Cannot submit step 7: " + "; ".join(problems),
            missing_steps={Party(p).value: steps for p, steps in missing.items() if steps},
        )


def update_step(
    case: CaseDB,
    step_number: int,
    payload: Dict[str, Any],
    actor: Actor,
    now: datetime.datetime,
) -> List[NotificationIntent]:
    validate_step_number(step_number)
    _check_step_eligibility(case, step_number, actor)
    _check_not_restricted(case, actor)

    is_final = step_number == FINAL_STEP
    if is_final:
        _ensure_final_submission_allowed(case)

    step = case.step(step_number)
    step.data = dict(payload or {})
    step.status.mark_submitted(actor.id, now)
    logger.debug(f"Step {step_number} of case {case.id} submitted by {actor.id}.")

    if not is_final:
        return []

    seal_case(case, actor.id, now)
    return [
        to_parties(NotificationTrigger.AGREEMENT_DRAFT_READY),
        to_case_managers(NotificationTrigger.CASE_READY_FOR_CM),
    ]


def unlock_step(case: CaseDB, step_number: int, actor: Actor, now: datetime.datetime) -> List[NotificationIntent]:
    require_privileged(actor, "unlock a step", case.id)
    validate_step_number(step_number)

    case.step_status(step_number).unlock(actor.id, now)
    if case.fully_locked:
        # A fully locked case must have every step locked.
        clear_full_lock(case)
        logger.info(f"Full lock on case {case.id} released because step {step_number} was unlocked.")
    return []


def case_view(case: CaseDB) -> Dict[str, Any]:
    """Serialise a case with every step's data laid over that step's empty template."""
    view = case.model_dump()
    for step in view["steps"]:
        step["data"] = merge_with_template(step["number"], step["data"])
    return view
