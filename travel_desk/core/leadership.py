"""
Role assignment for employees and the work-unit headship that follows from it.

A leader heads the work unit they belong to. Granting, revoking or moving a
leader therefore rewrites `work_units.head_id` in the same transaction as the
role rows. Past reviews keep their `reviewer_id` whatever happens to headship.
"""
import logging
import uuid
from dataclasses import dataclass, field

from fastapi import HTTPException
from sqlalchemy.orm import Session

from travel_desk.core.audit import log_event
from travel_desk.core.rbac import ensure_role, get_user_role_names
from travel_desk.models.enums import RoleName
from travel_desk.models.rbac import Role, UserRole
from travel_desk.models.user import User
from travel_desk.models.work_unit import WorkUnit

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = frozenset(
    {RoleName.EMPLOYEE.value, RoleName.LEADER.value, RoleName.VERIFICATOR.value}
)


@dataclass
class HeadshipChange:
    released_unit_ids: list[uuid.UUID] = field(default_factory=list)
    claimed_unit_id: uuid.UUID | None = None
    displaced_head_id: uuid.UUID | None = None


def _sync_roles(db: Session, user: User, wanted: set[str]) -> None:
    rows = (
        db.query(UserRole)
        .join(Role, Role.id == UserRole.role_id)
        .filter(UserRole.user_id == user.id, Role.name.in_(ASSIGNABLE_ROLES))
        .all()
    )
    current = {row.role.name: row for row in rows}

    for name, row in current.items():
        if name not in wanted:
            db.delete(row)
    for name in wanted - set(current):
        db.add(UserRole(user_id=user.id, role_id=ensure_role(db, name).id))


def _update_headship(
    db: Session,
    user: User,
    *,
    was_leader: bool,
    will_lead: bool,
    old_unit_id: uuid.UUID | None,
    new_unit: WorkUnit | None,
) -> HeadshipChange:
    change = HeadshipChange()
    new_unit_id = new_unit.id if new_unit else None
    moved = old_unit_id != new_unit_id
    claim = will_lead and new_unit is not None and (not was_leader or moved)

    headed = db.query(WorkUnit).filter(WorkUnit.head_id == user.id).all()
    for unit in headed:
        if not will_lead or (moved and unit.id != new_unit_id):
            unit.head_id = None
            change.released_unit_ids.append(unit.id)
    # free the unique head slot before claiming the new unit
    db.flush()

    if claim and new_unit.head_id != user.id:
        change.displaced_head_id = new_unit.head_id
        new_unit.head_id = user.id
        change.claimed_unit_id = new_unit.id
        db.flush()

    return change


def set_employee_roles(
    db: Session,
    *,
    actor: User,
    user: User,
    roles: set[str],
    work_unit_id: uuid.UUID | None,
) -> HeadshipChange:
    """
    Replace the user's assignable roles and work unit, keeping headship consistent.

    - gains leader: becomes head of the target unit, displacing any current head
    - loses leader: any unit they head is left without a head
    - stays leader and changes unit: old unit released, new unit claimed
    Admin/superadmin memberships are left untouched.
    """
    unknown = sorted(set(roles) - ASSIGNABLE_ROLES)
    if unknown:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Invalid roles",
                "errors": [{"field": "roles", "code": "invalid", "message": f"Unknown or non-assignable role: {r}"} for r in unknown],
            },
        )

    new_unit = None
    if work_unit_id is not None:
        new_unit = db.get(WorkUnit, work_unit_id)
        if not new_unit:
            raise HTTPException(status_code=404, detail="Work unit not found")

    before_roles = get_user_role_names(db, user)
    was_leader = RoleName.LEADER.value in before_roles
    will_lead = RoleName.LEADER.value in roles
    old_unit_id = user.work_unit_id

    with db.begin_nested():
        _sync_roles(db, user, set(roles))
        user.work_unit_id = work_unit_id
        db.flush()
        change = _update_headship(
            db,
            user,
            was_leader=was_leader,
            will_lead=will_lead,
            old_unit_id=old_unit_id,
            new_unit=new_unit,
        )

        log_event(
            db=db,
            actor=actor,
            action="EMPLOYEE_ROLES_SET",
            entity_type="user",
            entity_id=user.id,
            metadata={
                "before": {"roles": sorted(before_roles), "work_unit_id": str(old_unit_id) if old_unit_id else None},
                "after": {"roles": sorted(roles), "work_unit_id": str(work_unit_id) if work_unit_id else None},
                "released_unit_ids": [str(u) for u in change.released_unit_ids],
                "claimed_unit_id": str(change.claimed_unit_id) if change.claimed_unit_id else None,
                "displaced_head_id": str(change.displaced_head_id) if change.displaced_head_id else None,
            },
        )

    if change.claimed_unit_id or change.released_unit_ids:
        logger.info(
            "Headship changed for user %s: claimed=%s released=%s displaced=%s",
            user.id,
            change.claimed_unit_id,
            change.released_unit_ids,
            change.displaced_head_id,
        )
    return change
