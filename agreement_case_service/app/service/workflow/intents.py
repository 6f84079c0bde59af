# What a workflow transition wants announced; recipients and wording are resolved later
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from agreement_case_service.app.service.events.models import NotificationTrigger


class Audience(str, Enum):
    PARTIES = "PARTIES" # owner and invited user of the case
    USERS = "USERS" # explicit user ids
    CASE_MANAGERS = "CASE_MANAGERS"
    LAWYER = "LAWYER"
    EMAIL = "EMAIL" # explicit address, used before the recipient has an account


class NotificationIntent(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    trigger: NotificationTrigger
    audience: Audience
    user_ids: List[str] = Field(default_factory=list)
    lawyer_id: Optional[str] = None
    email: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)


def to_parties(trigger: NotificationTrigger, **context: Any) -> NotificationIntent:
    return NotificationIntent(trigger=trigger, audience=Audience.PARTIES, context=context)


def to_users(trigger: NotificationTrigger, user_ids: List[str], **context: Any) -> NotificationIntent:
    return NotificationIntent(trigger=trigger, audience=Audience.USERS, user_ids=user_ids, context=context)


def to_case_managers(trigger: NotificationTrigger, **context: Any) -> NotificationIntent:
    return NotificationIntent(trigger=trigger, audience=Audience.CASE_MANAGERS, context=context)


def to_lawyer(trigger: NotificationTrigger, lawyer_id: str, **context: Any) -> NotificationIntent:
    return NotificationIntent(trigger=trigger, audience=Audience.LAWYER, lawyer_id=lawyer_id, context=context)


def to_email(trigger: NotificationTrigger, email: str, **context: Any) -> NotificationIntent:
    return NotificationIntent(trigger=trigger, audience=Audience.EMAIL, email=email, context=context)
