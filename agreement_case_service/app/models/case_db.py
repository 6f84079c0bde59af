import datetime
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


STEP_NUMBERS = (1, 2, 3, 4, 5, 6, 7)
FINAL_STEP = 7


class WorkflowStatus(str, Enum):
    DRAFT = "DRAFT"
    CM = "CM"
    PAID = "PAID"
    LAWYER = "LAWYER"


class Party(str, Enum):
    USER1 = "user1" # owner
    USER2 = "user2" # invited partner


# Steps each party has to submit before step 7 can seal the case
REQUIRED_STEPS: Dict[Party, tuple] = {
    Party.USER1: (1, 2, 5, 6, 7),
    Party.USER2: (3, 4),
}


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class StepStatus(BaseModel):
    submitted: bool = False
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime.datetime] = None

    locked: bool = False
    locked_by: Optional[str] = None
    locked_at: Optional[datetime.datetime] = None

    unlocked_by: Optional[str] = None
    unlocked_at: Optional[datetime.datetime] = None

    def mark_submitted(self, actor_id: str, now: datetime.datetime) -> None:
        self.submitted = True
        self.submitted_by = actor_id
        self.submitted_at = now

    def lock(self, actor_id: str, now: datetime.datetime) -> None:
        self.locked = True
        self.locked_by = actor_id
        self.locked_at = now

    def unlock(self, actor_id: str, now: datetime.datetime) -> None:
        self.locked = False
        self.locked_by = None
        self.locked_at = None
        self.unlocked_by = actor_id
        self.unlocked_at = now


class CaseStep(BaseModel):
    number: int = Field(ge=1, le=7)
    data: Dict[str, Any] = Field(default_factory=dict)
    status: StepStatus = Field(default_factory=StepStatus)


class PreQuestionnaire(BaseModel):
    answers: List[str] = Field(default_factory=list)
    selected_lawyer: Optional[str] = None
    selected_at: Optional[datetime.datetime] = None

    submitted: bool = False
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime.datetime] = None

    locked: bool = False
    locked_by: Optional[str] = None
    locked_at: Optional[datetime.datetime] = None

    def clear_lock(self) -> None:
        self.locked = False
        self.locked_by = None
        self.locked_at = None


class Approval(BaseModel):
    user1_approved: bool = False
    user1_approved_at: Optional[datetime.datetime] = None
    user2_approved: bool = False
    user2_approved_at: Optional[datetime.datetime] = None

    lawyer_approved: bool = False
    lawyer_approved_at: Optional[datetime.datetime] = None
    approved_lawyer: Optional[str] = None

    case_manager_approved: bool = False
    case_manager_approved_at: Optional[datetime.datetime] = None
    approved_by: Optional[str] = None

    def has_quorum(self) -> bool:
        # Lawyer approval is tracked but deliberately left out of the quorum.
        return self.user1_approved and self.user2_approved and self.case_manager_approved


def _empty_steps() -> List[CaseStep]:
    return [CaseStep(number=n) for n in STEP_NUMBERS]


class CaseDB(BaseModel):
    """The case aggregate, persisted as a single document in the `cases` collection."""

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    title: str = "Untitled case"

    owner: str
    invited_user: Optional[str] = None
    invited_email: Optional[str] = None
    invite_token: Optional[str] = None
    invite_token_expires: Optional[datetime.datetime] = None

    steps: List[CaseStep] = Field(default_factory=_empty_steps)

    fully_locked: bool = False
    fully_locked_by: Optional[str] = None
    fully_locked_at: Optional[datetime.datetime] = None

    pre_questionnaire_user1: PreQuestionnaire = Field(default_factory=PreQuestionnaire)
    pre_questionnaire_user2: PreQuestionnaire = Field(default_factory=PreQuestionnaire)
    approval: Approval = Field(default_factory=Approval)

    assigned_case_manager: Optional[str] = None
    workflow_status: WorkflowStatus = WorkflowStatus.DRAFT

    version: int = 1 # compare-and-swap token, bumped by every persisted write
    created_at: datetime.datetime = Field(default_factory=utcnow)
    updated_at: datetime.datetime = Field(default_factory=utcnow)

    @field_validator("steps")
    @classmethod
    def _materialise_all_steps(cls, steps: List[CaseStep]) -> List[CaseStep]:
        by_number = {s.number: s for s in steps}
        return [by_number.get(n) or CaseStep(number=n) for n in STEP_NUMBERS]

    @field_validator("pre_questionnaire_user1", "pre_questionnaire_user2", "approval", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("workflow_status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return WorkflowStatus.DRAFT if value is None else value

    # --- invariant-preserving helpers ---

    def step(self, step_number: int) -> CaseStep:
        if step_number not in STEP_NUMBERS:
            raise ValueError(f"Step number must be between 1 and 7, got {step_number}.")
        return self.steps[step_number - 1]

    def step_status(self, step_number: int) -> StepStatus:
        return self.step(step_number).status

    def pre_questionnaire(self, party: Party) -> PreQuestionnaire:
        if Party(party) is Party.USER1:
            return self.pre_questionnaire_user1
        return self.pre_questionnaire_user2

    def other_party(self, party: Party) -> Party:
        return Party.USER2 if Party(party) is Party.USER1 else Party.USER1

    def party_of(self, user_id: Optional[str]) -> Optional[Party]:
        if not user_id:
            return None
        if self.owner == user_id:
            return Party.USER1
        if self.invited_user and self.invited_user == user_id:
            return Party.USER2
        return None

    def user_for(self, party: Party) -> Optional[str]:
        return self.owner if Party(party) is Party.USER1 else self.invited_user

    def are_all_steps_submitted(self) -> bool:
        return all(s.status.submitted for s in self.steps)

    def all_steps_locked(self) -> bool:
        return all(s.status.locked for s in self.steps)

    def is_sealed(self) -> bool:
        """Fully locked with every step submitted: the gate for everything after step 7."""
        return self.fully_locked and self.are_all_steps_submitted()

    def missing_steps(self) -> Dict[Party, List[int]]:
        return {
            party: [n for n in required if not self.step_status(n).submitted]
            for party, required in REQUIRED_STEPS.items()
        }

    def both_pre_questionnaires_submitted(self) -> bool:
        return self.pre_questionnaire_user1.submitted and self.pre_questionnaire_user2.submitted

    def selected_lawyers(self) -> List[str]:
        return [
            pq.selected_lawyer
            for pq in (self.pre_questionnaire_user1, self.pre_questionnaire_user2)
            if pq.selected_lawyer
        ]
