import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from agreement_case_service.app.service.events.models import NotificationRequiredEvent


class OutboxStatus(str, Enum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"


class NotificationOutboxDB(BaseModel): # One row per notification event awaiting Kafka delivery
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4().hex))
    case_id: str
    event: NotificationRequiredEvent
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None

    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.UTC))
    published_at: Optional[datetime.datetime] = None
