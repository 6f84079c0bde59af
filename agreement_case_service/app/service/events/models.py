# Pydantic models for the events this service publishes
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from enum import Enum
import datetime
import uuid


class EventMetaData(BaseModel):
    causation_id: Optional[str] = None # command_id of the command that produced the event

class BaseEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str
    aggregate_id: str
    timestamp: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    version: int = 1 # case version the event was emitted from
    payload: BaseModel
    metadata: EventMetaData = Field(default_factory=EventMetaData)


class NotificationTrigger(str, Enum):
    AGREEMENT_DRAFT_READY = "AGREEMENT_DRAFT_READY"
    CASE_READY_FOR_CM = "CASE_READY_FOR_CM"
    PRE_QUESTIONNAIRE_SUBMITTED = "PRE_QUESTIONNAIRE_SUBMITTED"
    PRE_QUESTIONNAIRES_COMPLETED = "PRE_QUESTIONNAIRES_COMPLETED"
    LAWYER_SELECTED = "LAWYER_SELECTED"
    LAWYER_INTRODUCTION = "LAWYER_INTRODUCTION"
    CLIENT_INTRODUCTION = "CLIENT_INTRODUCTION"
    PROCEED_TO_LAWYER = "PROCEED_TO_LAWYER"
    CASE_MANAGER_ASSIGNED = "CASE_MANAGER_ASSIGNED"
    CASE_MOVED_TO_CM = "CASE_MOVED_TO_CM"
    CASE_INVITE = "CASE_INVITE"


# --- Notification Required Event ---

class NotificationRequiredEventPayload(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    trigger: NotificationTrigger
    recipients: List[str] # email addresses
    subject: str
    text: str
    context_data: Dict[str, Any] = Field(default_factory=dict)

class NotificationRequiredEvent(BaseEvent):
    event_type: str = "NotificationRequired"
    payload: NotificationRequiredEventPayload
    # aggregate_id is the case_id the notification pertains to.
