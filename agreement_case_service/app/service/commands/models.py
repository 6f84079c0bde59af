# Pydantic models for Commands
from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
import uuid


class BaseCommand(BaseModel):
    command_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

class CaseCommand(BaseCommand):
    case_id: str

class CreateCaseCommand(BaseCommand):
    title: Optional[str] = None

# Steps
class UpdateStepCommand(CaseCommand):
    step_number: int
    data: Dict[str, Any] = Field(default_factory=dict)

class UnlockStepCommand(CaseCommand):
    step_number: int

class UnlockCaseCommand(CaseCommand):
    pass

# Pre-questionnaire and lawyers
class SubmitPreQuestionnaireCommand(CaseCommand):
    answers: Optional[List[str]] = None # None is rejected by the workflow as invalid input

class SelectLawyerCommand(CaseCommand):
    lawyer_id: str
    force: bool = False
    message: Optional[str] = None

# Approvals and status
class ApproveCaseCommand(CaseCommand):
    pass

class ApproveCaseByLawyerCommand(CaseCommand):
    lawyer_id: str

class AssignCaseManagerCommand(CaseCommand):
    manager_id: str

class ChangeWorkflowStatusCommand(CaseCommand):
    status: str

# Partner management
class InvitePartnerCommand(CaseCommand):
    email: str

class AcceptInviteCommand(CaseCommand):
    token: str

class RemovePartnerCommand(CaseCommand):
    pass
