from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from travel_desk.core.security import get_current_user
from travel_desk.db.session import get_db
from travel_desk.models.enums import RoleName
from travel_desk.models.rbac import Role, UserRole
from travel_desk.models.user import User

ADMIN_ROLES = (RoleName.ADMIN.value, RoleName.SUPERADMIN.value)
ASSIGNMENT_CREATOR_ROLES = ADMIN_ROLES + (RoleName.LEADER.value,)

# permission -> roles granting it
ROLE_PERMISSIONS = {
    "assignments.create": set(ASSIGNMENT_CREATOR_ROLES),
    "reports.review.commitment_officer": {RoleName.VERIFICATOR.value},
    "reports.review.section_head": {RoleName.LEADER.value},
    "employees.manage": set(ADMIN_ROLES),
    "master_data.manage": set(ADMIN_ROLES),
    "audit.read": set(ADMIN_ROLES),
}


@dataclass(frozen=True)
class RoleFlags:
    """Boolean view of an actor's role set, as consumed by scoping and dashboard code."""
    is_admin_or_superadmin: bool = False
    is_leader: bool = False
    is_verificator: bool = False
    is_employee: bool = False

    @classmethod
    def from_names(cls, names: set[str]) -> "RoleFlags":
        return cls(
            is_admin_or_superadmin=bool(names & set(ADMIN_ROLES)),
            is_leader=RoleName.LEADER.value in names,
            is_verificator=RoleName.VERIFICATOR.value in names,
            is_employee=RoleName.EMPLOYEE.value in names,
        )

    @property
    def sees_all_assignments(self) -> bool:
        return self.is_admin_or_superadmin or self.is_leader or self.is_verificator

    @property
    def cache_key(self) -> str:
        return "".join(
            "1" if flag else "0"
            for flag in (self.is_admin_or_superadmin, self.is_leader, self.is_verificator, self.is_employee)
        )


def get_user_role_names(db: Session, user: User) -> set[str]:
    rows = (
        db.query(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user.id)
        .all()
    )
    return {r[0] for r in rows}


def actor_has_any_role(db: Session, user: User, roles) -> bool:
    return bool(get_user_role_names(db, user) & set(roles))


def permissions_for(role_names: set[str]) -> set[str]:
    return {perm for perm, roles in ROLE_PERMISSIONS.items() if roles & role_names}


def actor_has_permission(db: Session, user: User, permission: str) -> bool:
    if permission not in ROLE_PERMISSIONS:
        raise KeyError(f"Unknown permission: {permission}")
    return permission in permissions_for(get_user_role_names(db, user))


def get_role_flags(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> RoleFlags:
    return RoleFlags.from_names(get_user_role_names(db, user))


def ensure_role(db: Session, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).one_or_none()
    if role is None:
        role = Role(name=name)
        db.add(role)
        db.flush()
    return role


def require_roles(*required: str):
    """
    Usage:
      Depends(require_roles("admin"))
      Depends(require_roles("admin", "superadmin"))  # any-of
    """
    required_set = set(required)

    def _dep(
        db: Session = Depends(get_db),
        user: User = Depends(get_current_user),
    ) -> User:
        if not actor_has_any_role(db, user, required_set):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden. Requires one of: {sorted(required_set)}",
            )
        return user

    return _dep
