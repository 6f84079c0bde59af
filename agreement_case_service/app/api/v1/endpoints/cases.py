# API Router for Cases
from fastapi import APIRouter, Depends, HTTPException, Body
import logging
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from agreement_case_service.infrastructure.database.connection import get_db
from agreement_case_service.infrastructure.kafka.producer import KafkaProducerService, get_kafka_producer
from agreement_case_service.app.dependencies.actor import get_current_actor
from agreement_case_service.app.service.access import Actor
from agreement_case_service.app.service.commands import handlers
from agreement_case_service.app.service.commands import models as commands
from agreement_case_service.app.service.workflow.step_updates import case_view
from agreement_case_service.app.service.exceptions import (
    BaseCaseManagementError,
    CaseNotFoundError,
    ConcurrencyConflictError,
    ConflictError,
    ForbiddenActionError,
    InvalidInputError,
    LawyerNotFoundError,
    PreconditionFailedError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# --- Request bodies ---

class CreateCaseRequest(BaseModel):
    title: Optional[str] = None

class UpdateStepRequest(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)

class PreQuestionnaireRequest(BaseModel):
    answers: Optional[List[str]] = None

class SelectLawyerRequest(BaseModel):
    lawyer_id: str
    force: bool = False
    message: Optional[str] = None

class LawyerApprovalRequest(BaseModel):
    lawyer_id: str

class AssignCaseManagerRequest(BaseModel):
    manager_id: str

class WorkflowStatusRequest(BaseModel):
    status: str

class InviteRequest(BaseModel):
    email: str

class AcceptInviteRequest(BaseModel):
    token: str


def _raise_http_error(e: Exception, action: str):
    """Translate workflow exceptions into HTTP responses."""
    if isinstance(e, (CaseNotFoundError, LawyerNotFoundError, UserNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidInputError):
        raise HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ForbiddenActionError):
        raise HTTPException(status_code=403, detail=str(e))
    if isinstance(e, (ConflictError, ConcurrencyConflictError)):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PreconditionFailedError):
        detail: Any = str(e)
        if e.missing_steps:
            detail = {"message": str(e), "missing_steps": e.missing_steps}
        raise HTTPException(status_code=412, detail=detail)
    if isinstance(e, BaseCaseManagementError):
        logger.error(f"Unhandled case error while trying to {action}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    logger.error(f"Unexpected error while trying to {action}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail=f"An unexpected error occurred while trying to {action}.")


@router.post("/cases", status_code=201, summary="Create a new case", tags=["Cases"])
async def create_case_api(
    request_data: Optional[CreateCaseRequest] = Body(default=None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        case = await handlers.handle_create_case_command(
            db, commands.CreateCaseCommand(title=request_data.title if request_data else None), actor
        )
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, "create a case")


@router.get("/cases", tags=["Cases"])
async def list_cases(
    limit: int = 50,
    skip: int = 0,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        cases = await handlers.list_cases_for_actor(db, actor, limit=limit, skip=skip)
        return [case_view(c) for c in cases]
    except Exception as e:
        _raise_http_error(e, "list cases")


@router.get("/cases/{case_id}", tags=["Cases"])
async def get_case_by_id(
    case_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        case = await handlers.get_case_for_actor(db, case_id, actor)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"retrieve case {case_id}")


@router.put("/cases/{case_id}/steps/{step_number}", tags=["Steps"])
async def update_step_api(
    case_id: str,
    step_number: int,
    request_data: UpdateStepRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.UpdateStepCommand(case_id=case_id, step_number=step_number, data=request_data.data)
    try:
        case = await handlers.handle_update_step_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"update step {step_number} of case {case_id}")


@router.post("/cases/{case_id}/steps/{step_number}/unlock", tags=["Steps"])
async def unlock_step_api(
    case_id: str,
    step_number: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.UnlockStepCommand(case_id=case_id, step_number=step_number)
    try:
        case = await handlers.handle_unlock_step_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"unlock step {step_number} of case {case_id}")


@router.post("/cases/{case_id}/unlock", tags=["Steps"])
async def unlock_case_api(
    case_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    try:
        case = await handlers.handle_unlock_case_command(
            db, commands.UnlockCaseCommand(case_id=case_id), actor, kafka_producer
        )
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"unlock case {case_id}")


@router.post("/cases/{case_id}/pre-questionnaire", tags=["Pre-questionnaire"])
async def submit_pre_questionnaire_api(
    case_id: str,
    request_data: PreQuestionnaireRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.SubmitPreQuestionnaireCommand(case_id=case_id, answers=request_data.answers)
    try:
        case = await handlers.handle_submit_pre_questionnaire_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"submit the pre-questionnaire for case {case_id}")


@router.post("/cases/{case_id}/lawyer", tags=["Pre-questionnaire"])
async def select_lawyer_api(
    case_id: str,
    request_data: SelectLawyerRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.SelectLawyerCommand(case_id=case_id, **request_data.model_dump())
    try:
        case = await handlers.handle_select_lawyer_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"select a lawyer for case {case_id}")


@router.get("/cases/{case_id}/lawyers/{lawyer_id}/selected", tags=["Pre-questionnaire"])
async def is_lawyer_selected_api(
    case_id: str,
    lawyer_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    try:
        await handlers.get_case_for_actor(db, case_id, actor)
        selected = await handlers.is_lawyer_selected_for_case(db, case_id, lawyer_id)
        return {"case_id": case_id, "lawyer_id": lawyer_id, "selected": selected}
    except Exception as e:
        _raise_http_error(e, f"check lawyer selection on case {case_id}")


@router.post("/cases/{case_id}/approve", tags=["Approvals"])
async def approve_case_by_user_api(
    case_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    try:
        case = await handlers.handle_approve_case_by_user_command(
            db, commands.ApproveCaseCommand(case_id=case_id), actor, kafka_producer
        )
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"approve case {case_id}")


@router.post("/cases/{case_id}/approve/lawyer", tags=["Approvals"])
async def approve_case_by_lawyer_api(
    case_id: str,
    request_data: LawyerApprovalRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.ApproveCaseByLawyerCommand(case_id=case_id, lawyer_id=request_data.lawyer_id)
    try:
        case = await handlers.handle_approve_case_by_lawyer_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"record lawyer approval on case {case_id}")


@router.post("/cases/{case_id}/approve/manager", tags=["Approvals"])
async def approve_case_by_manager_api(
    case_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    try:
        case = await handlers.handle_approve_case_by_manager_command(
            db, commands.ApproveCaseCommand(case_id=case_id), actor, kafka_producer
        )
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"record case-manager approval on case {case_id}")


@router.post("/cases/{case_id}/case-manager", tags=["Approvals"])
async def assign_case_manager_api(
    case_id: str,
    request_data: AssignCaseManagerRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.AssignCaseManagerCommand(case_id=case_id, manager_id=request_data.manager_id)
    try:
        case = await handlers.handle_assign_case_manager_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"assign a case manager to case {case_id}")


@router.put("/cases/{case_id}/workflow-status", tags=["Approvals"])
async def change_workflow_status_api(
    case_id: str,
    request_data: WorkflowStatusRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.ChangeWorkflowStatusCommand(case_id=case_id, status=request_data.status)
    try:
        case = await handlers.handle_change_workflow_status_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"change the workflow status of case {case_id}")


@router.post("/cases/{case_id}/invite", tags=["Partners"])
async def invite_partner_api(
    case_id: str,
    request_data: InviteRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.InvitePartnerCommand(case_id=case_id, email=request_data.email)
    try:
        _, invite_url = await handlers.handle_invite_partner_command(db, command, actor, kafka_producer)
        return {"case_id": case_id, "invite_url": invite_url}
    except Exception as e:
        _raise_http_error(e, f"invite a partner to case {case_id}")


@router.post("/cases/{case_id}/accept-invite", tags=["Partners"])
async def accept_invite_api(
    case_id: str,
    request_data: AcceptInviteRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    command = commands.AcceptInviteCommand(case_id=case_id, token=request_data.token)
    try:
        case = await handlers.handle_accept_invite_command(db, command, actor, kafka_producer)
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"accept the invite to case {case_id}")


@router.delete("/cases/{case_id}/partner", tags=["Partners"])
async def remove_partner_api(
    case_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncIOMotorDatabase = Depends(get_db),
    kafka_producer: KafkaProducerService = Depends(get_kafka_producer),
):
    try:
        case = await handlers.handle_remove_partner_command(
            db, commands.RemovePartnerCommand(case_id=case_id), actor, kafka_producer
        )
        return case_view(case)
    except Exception as e:
        _raise_http_error(e, f"remove the partner from case {case_id}")
