# Actor identity and the single capability check used by every workflow gate
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from agreement_case_service.app.service.exceptions import ForbiddenActionError


class Role(str, Enum):
    END_USER = "end_user"
    CASE_MANAGER = "case_manager"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class EndUserType(str, Enum):
    USER1 = "user1"
    USER2 = "user2"


PRIVILEGED_ROLES = frozenset({Role.CASE_MANAGER, Role.ADMIN, Role.SUPERADMIN})


class Actor(BaseModel):
    id: str
    role: Role = Role.END_USER
    end_user_type: Optional[EndUserType] = None

    @property
    def is_privileged(self) -> bool:
        return is_privileged(self.role)


def is_privileged(role: Role) -> bool:
    return Role(role) in PRIVILEGED_ROLES


def require_privileged(actor: Actor, action: str, case_id: Optional[str] = None) -> None:
    if not is_privileged(actor.role):
        raise ForbiddenActionError(case_id, f"Role '{actor.role.value}' is not allowed to {action}.")
