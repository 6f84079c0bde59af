# Read-only views over the user and lawyer directories owned by other services
from typing import Optional

from pydantic import BaseModel, ConfigDict

from agreement_case_service.app.service.access import EndUserType, Role


class UserDB(BaseModel):
    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Role = Role.END_USER
    end_user_type: Optional[EndUserType] = None

    @property
    def display_name(self) -> str:
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.email


class LawyerDB(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    direct_email: Optional[str] = None
    public_email: Optional[str] = None
    direct_phone: Optional[str] = None
    public_phone: Optional[str] = None

    @property
    def contact_email(self) -> Optional[str]:
        return self.direct_email or self.public_email

    @property
    def contact_phone(self) -> Optional[str]:
        return self.direct_phone or self.public_phone
