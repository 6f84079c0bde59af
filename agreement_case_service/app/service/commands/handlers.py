# Command Handler Implementation
import datetime
import logging
from typing import Callable, List, Optional, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase
from opentelemetry import trace

from agreement_case_service.app.config import settings
from agreement_case_service.app.models.case_db import CaseDB, utcnow
from agreement_case_service.app.observability import (
    case_commands_processed_counter,
    case_concurrency_retries_counter,
    workflow_transitions_counter,
)
from agreement_case_service.app.service.access import Actor
from agreement_case_service.app.service.commands.models import (
    AcceptInviteCommand,
    ApproveCaseByLawyerCommand,
    ApproveCaseCommand,
    AssignCaseManagerCommand,
    ChangeWorkflowStatusCommand,
    CreateCaseCommand,
    InvitePartnerCommand,
    RemovePartnerCommand,
    SelectLawyerCommand,
    SubmitPreQuestionnaireCommand,
    UnlockCaseCommand,
    UnlockStepCommand,
    UpdateStepCommand,
)
from agreement_case_service.app.service.exceptions import ConcurrencyConflictError, ForbiddenActionError
from agreement_case_service.app.service.notification_dispatcher import dispatch_notifications
from agreement_case_service.app.service.workflow import approvals, invitations, locking, pre_questionnaire, step_updates
from agreement_case_service.app.service.workflow.intents import NotificationIntent
from agreement_case_service.infrastructure.database import case_store, directory_store
from agreement_case_service.infrastructure.kafka.producer import KafkaProducerService


logger = logging.getLogger(__name__)

CaseMutation = Callable[[CaseDB, datetime.datetime], List[NotificationIntent]]


def _record_transitions(case: CaseDB, previous_status: str, previous_lock: bool, command_name: str) -> None:
    if case.workflow_status != previous_status:
        workflow_transitions_counter.add(1, {"transition": f"{previous_status}->{case.workflow_status}"})
        logger.info(f"Case {case.id} moved from {previous_status} to {case.workflow_status} by {command_name}")
    if case.fully_locked != previous_lock:
        workflow_transitions_counter.add(1, {"transition": "LOCKED" if case.fully_locked else "UNLOCKED"})


async def _apply_case_mutation(
    db: AsyncIOMotorDatabase,
    case_id: str,
    command_name: str,
    command_id: str,
    mutate: CaseMutation,
    kafka_producer: Optional[KafkaProducerService],
) -> CaseDB:
    """Load the case, apply a pure mutation and store it with a compare-and-swap on `version`.

    A lost race reloads the case and re-applies the mutation, up to CASE_UPDATE_MAX_RETRIES
    attempts. Validation errors raised by `mutate` abort without writing anything.
    Notifications are dispatched only after the write committed.
    """
    current_span = trace.get_current_span()
    current_span.set_attribute("command.name", command_name)
    current_span.set_attribute("command.id", command_id)
    current_span.set_attribute("case.id", case_id)

    max_attempts = max(1, settings.CASE_UPDATE_MAX_RETRIES)
    for attempt in range(1, max_attempts + 1):
        case = await case_store.load_case(db, case_id)
        expected_version = case.version
        previous_status, previous_lock = case.workflow_status, case.fully_locked

        intents = mutate(case, utcnow())
        try:
            await case_store.replace_case_if_version(db, case, expected_version)
        except ConcurrencyConflictError as cce:
            case_concurrency_retries_counter.add(1, {"command.name": command_name})
            current_span.add_event("CaseVersionConflict", {"attempt": attempt})
            if attempt == max_attempts:
                logger.error(f"{command_name} on case {case_id} gave up after {attempt} conflicting attempts: {cce}")
                raise
            logger.warning(f"{command_name} on case {case_id} hit a version conflict (attempt {attempt}); retrying.")
            continue
        break

    current_span.set_attribute("case.version", case.version)
    current_span.set_attribute("case.workflow_status", str(case.workflow_status))
    case_commands_processed_counter.add(1, {"command.name": command_name})
    _record_transitions(case, previous_status, previous_lock, command_name)
    logger.info(f"{command_name} applied to case {case_id} (version {case.version}, {len(intents)} notification(s)).")

    await dispatch_notifications(db, case, intents, kafka_producer, causation_id=command_id)
    return case


async def handle_create_case_command(
    db: AsyncIOMotorDatabase,
    command: CreateCaseCommand,
    actor: Actor,
) -> CaseDB:
    current_span = trace.get_current_span()
    current_span.set_attribute("command.name", "CreateCaseCommand")
    current_span.set_attribute("command.id", command.command_id)

    case = invitations.create_case(actor.id, command.title, utcnow())
    await case_store.insert_case(db, case)
    current_span.set_attribute("case.id", case.id)
    case_commands_processed_counter.add(1, {"command.name": "CreateCaseCommand"})
    return case


async def handle_update_step_command(
    db: AsyncIOMotorDatabase,
    command: UpdateStepCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    trace.get_current_span().set_attribute("case.step_number", command.step_number)
    return await _apply_case_mutation(
        db, command.case_id, "UpdateStepCommand", command.command_id,
        lambda case, now: step_updates.update_step(case, command.step_number, command.data, actor, now),
        kafka_producer,
    )


async def handle_unlock_step_command(
    db: AsyncIOMotorDatabase,
    command: UnlockStepCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    return await _apply_case_mutation(
        db, command.case_id, "UnlockStepCommand", command.command_id,
        lambda case, now: step_updates.unlock_step(case, command.step_number, actor, now),
        kafka_producer,
    )


async def handle_unlock_case_command(
    db: AsyncIOMotorDatabase,
    command: UnlockCaseCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    return await _apply_case_mutation(
        db, command.case_id, "UnlockCaseCommand", command.command_id,
        lambda case, now: locking.unlock_case(case, actor, now),
        kafka_producer,
    )


async def handle_submit_pre_questionnaire_command(
    db: AsyncIOMotorDatabase,
    command: SubmitPreQuestionnaireCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    return await _apply_case_mutation(
        db, command.case_id, "SubmitPreQuestionnaireCommand", command.command_id,
        lambda case, now: pre_questionnaire.submit_pre_questionnaire(case, actor, command.answers, now),
        kafka_producer,
    )


async def handle_select_lawyer_command(
    db: AsyncIOMotorDatabase,
    command: SelectLawyerCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    lawyer = await directory_store.get_lawyer_by_id(db, command.lawyer_id)
    trace.get_current_span().set_attribute("lawyer.id", command.lawyer_id)
    return await _apply_case_mutation(
        db, command.case_id, "SelectLawyerCommand", command.command_id,
        lambda case, now: pre_questionnaire.select_lawyer(
            case, actor, command.lawyer_id, lawyer, now, force=command.force, message=command.message
        ),
        kafka_producer,
    )


async def handle_approve_case_by_user_command(
    db: AsyncIOMotorDatabase,
    command: ApproveCaseCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    return await _apply_case_mutation(
        db, command.case_id, "ApproveCaseByUserCommand", command.command_id,
        lambda case, now: approvals.approve_case_by_user(case, actor, now),
        kafka_producer,
    )


async def handle_approve_case_by_lawyer_command(
    db: AsyncIOMotorDatabase,
    command: ApproveCaseByLawyerCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    # A lawyer approves for themselves; staff may record it on their behalf.
    if not actor.is_privileged and actor.id != command.lawyer_id:
        raise ForbiddenActionError(command.case_id, "Lawyer approval can only be given by that lawyer or by staff.")
    return await _apply_case_mutation(
        db, command.case_id, "ApproveCaseByLawyerCommand", command.command_id,
        lambda case, now: approvals.approve_case_by_lawyer(case, command.lawyer_id, now),
        kafka_producer,
    )


async def handle_approve_case_by_manager_command(
    db: AsyncIOMotorDatabase,
    command: ApproveCaseCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    return await _apply_case_mutation(
        db, command.case_id, "ApproveCaseByManagerCommand", command.command_id,
        lambda case, now: approvals.approve_case_by_manager(case, actor, now),
        kafka_producer,
    )


async def handle_assign_case_manager_command(
    db: AsyncIOMotorDatabase,
    command: AssignCaseManagerCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    manager = await directory_store.get_user_by_id(db, command.manager_id)
    return await _apply_case_mutation(
        db, command.case_id, "AssignCaseManagerCommand", command.command_id,
        lambda case, now: approvals.assign_case_manager(case, actor, command.manager_id, manager, now),
        kafka_producer,
    )


async def handle_change_workflow_status_command(
    db: AsyncIOMotorDatabase,
    command: ChangeWorkflowStatusCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    trace.get_current_span().set_attribute("case.requested_status", command.status)
    return await _apply_case_mutation(
        db, command.case_id, "ChangeWorkflowStatusCommand", command.command_id,
        lambda case, now: approvals.change_workflow_status(case, command.status, actor, now),
        kafka_producer,
    )


async def handle_invite_partner_command(
    db: AsyncIOMotorDatabase,
    command: InvitePartnerCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> Tuple[CaseDB, str]:
    issued_urls: List[str] = []

    def _invite(case: CaseDB, now: datetime.datetime) -> List[NotificationIntent]:
        invite_url, intents = invitations.invite_partner(case, actor, command.email, now)
        issued_urls.append(invite_url)
        return intents

    case = await _apply_case_mutation(
        db, command.case_id, "InvitePartnerCommand", command.command_id, _invite, kafka_producer
    )
    # On retries only the last attempt's token was stored.
    return case, issued_urls[-1]


async def handle_accept_invite_command(
    db: AsyncIOMotorDatabase,
    command: AcceptInviteCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    return await _apply_case_mutation(
        db, command.case_id, "AcceptInviteCommand", command.command_id,
        lambda case, now: invitations.accept_invite(case, actor.id, command.token, now),
        kafka_producer,
    )


async def handle_remove_partner_command(
    db: AsyncIOMotorDatabase,
    command: RemovePartnerCommand,
    actor: Actor,
    kafka_producer: Optional[KafkaProducerService] = None,
) -> CaseDB:
    return await _apply_case_mutation(
        db, command.case_id, "RemovePartnerCommand", command.command_id,
        lambda case, now: invitations.remove_partner(case, actor, now),
        kafka_producer,
    )


# --- Queries ---

def ensure_can_view(case: CaseDB, actor: Actor) -> None:
    if actor.is_privileged or case.party_of(actor.id) is not None:
        return
    if case.assigned_case_manager == actor.id:
        return
    raise ForbiddenActionError(case.id, "You do not have access to this case.")


async def get_case_for_actor(db: AsyncIOMotorDatabase, case_id: str, actor: Actor) -> CaseDB:
    case = await case_store.load_case(db, case_id)
    ensure_can_view(case, actor)
    return case


async def list_cases_for_actor(db: AsyncIOMotorDatabase, actor: Actor, limit: int = 50, skip: int = 0) -> List[CaseDB]:
    if actor.is_privileged:
        return await case_store.list_all_cases(db, limit=limit, skip=skip)
    return await case_store.list_cases_for_user(db, actor.id, limit=limit, skip=skip)


async def is_lawyer_selected_for_case(db: AsyncIOMotorDatabase, case_id: str, lawyer_id: str) -> bool:
    case = await case_store.load_case(db, case_id)
    return pre_questionnaire.is_lawyer_selected(case, lawyer_id)
