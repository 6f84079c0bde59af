from .case_db import CaseDB, CaseStep, StepStatus, PreQuestionnaire, Approval, WorkflowStatus, Party
from .directory_db import UserDB, LawyerDB
from .notification_outbox_db import NotificationOutboxDB, OutboxStatus

__all__ = [
    "CaseDB",
    "CaseStep",
    "StepStatus",
    "PreQuestionnaire",
    "Approval",
    "WorkflowStatus",
    "Party",
    "UserDB",
    "LawyerDB",
    "NotificationOutboxDB",
    "OutboxStatus",
]
