from uuid import UUID
from pydantic import BaseModel, Field

from travel_desk.models.enums import RoleName


class EmployeeOut(BaseModel):
    id: str
    full_name: str
    email: str | None
    nip: str | None = None
    work_unit_id: str | None
    roles: list[str] = []
    is_active: bool = True


class EmployeeRolesUpdate(BaseModel):
    """Replace the employee's assignable roles and work unit"""
    roles: list[RoleName] = Field(min_length=1)
    work_unit_id: UUID | None = None


class HeadshipChangeOut(BaseModel):
    released_unit_ids: list[str]
    claimed_unit_id: str | None
    displaced_head_id: str | None


class EmployeeRolesOut(BaseModel):
    employee: EmployeeOut
    headship: HeadshipChangeOut


class EmployeeCreate(BaseModel):
    full_name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    nip: str | None = Field(default=None, max_length=30, pattern=r"^\d+$")
    roles: list[RoleName] = Field(default_factory=lambda: [RoleName.EMPLOYEE], min_length=1)
    work_unit_id: UUID | None = None
