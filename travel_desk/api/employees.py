from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.leadership import HeadshipChange, set_employee_roles
from travel_desk.core.rbac import ADMIN_ROLES, get_user_role_names, require_roles
from travel_desk.db.session import get_db
from travel_desk.models.assignment import assignment_participants
from travel_desk.models.user import User
from travel_desk.schemas.employee import (
    EmployeeCreate,
    EmployeeOut,
    EmployeeRolesOut,
    EmployeeRolesUpdate,
    HeadshipChangeOut,
)
from travel_desk.schemas.pagination import paginate

router = APIRouter(prefix="/employees", tags=["employees"])


def employee_to_out(db: Session, u: User) -> EmployeeOut:
    return EmployeeOut(
        id=str(u.id),
        full_name=u.full_name,
        email=u.email,
        nip=u.nip,
        work_unit_id=str(u.work_unit_id) if u.work_unit_id else None,
        roles=sorted(get_user_role_names(db, u)),
        is_active=u.is_active,
    )


def headship_to_out(change: HeadshipChange) -> HeadshipChangeOut:
    return HeadshipChangeOut(
        released_unit_ids=[str(u) for u in change.released_unit_ids],
        claimed_unit_id=str(change.claimed_unit_id) if change.claimed_unit_id else None,
        displaced_head_id=str(change.displaced_head_id) if change.displaced_head_id else None,
    )


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="Employee not found")
    return u


@router.get("")
def list_employees(
    search: str | None = Query(default=None, description="Search by name, NIP or email"),
    work_unit_id: UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500, description="Maximum number of results"),
    offset: int = Query(default=0, ge=0, description="Number of results to skip"),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*ADMIN_ROLES)),
):
    """
    List employees with optional search and pagination.

    Use ?include_pagination=true to get pagination metadata.
    """
    query = db.query(User)

    if search:
        search_term = f"%{search.lower()}%"
        query = query.filter(
            (User.full_name.ilike(search_term))
            | (User.nip.ilike(search_term))
            | (User.email.ilike(search_term))
        )
    if work_unit_id:
        query = query.filter(User.work_unit_id == work_unit_id)

    page = paginate(
        query.order_by(User.full_name.asc()),
        limit=limit,
        offset=offset,
        convert=lambda u: employee_to_out(db, u),
    )
    if include_pagination:
        return page
    return page.items


@router.get("/{user_id}", response_model=EmployeeOut)
def get_employee(
    user_id: UUID,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(*ADMIN_ROLES)),
):
    return employee_to_out(db, _get_user_or_404(db, user_id))


@router.post("", response_model=EmployeeRolesOut, status_code=status.HTTP_201_CREATED)
def create_employee(
    payload: EmployeeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    """Create a user and grant roles in one transaction; a new leader claims the unit's headship."""
    try:
        with db.begin_nested():
            u = User(full_name=payload.full_name, email=payload.email, nip=payload.nip)
            db.add(u)
            db.flush()
            log_event(
                db=db,
                actor=current_user,
                action="EMPLOYEE_CREATED",
                entity_type="user",
                entity_id=u.id,
                metadata={"full_name": u.full_name, "email": u.email, "nip": u.nip},
            )
            change = set_employee_roles(
                db,
                actor=current_user,
                user=u,
                roles={r.value for r in payload.roles},
                work_unit_id=payload.work_unit_id,
            )
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Email or NIP already in use")

    db.commit()
    invalidate_dashboard()

    db.refresh(u)
    return EmployeeRolesOut(employee=employee_to_out(db, u), headship=headship_to_out(change))


@router.put("/{user_id}/roles", response_model=EmployeeRolesOut)
def update_employee_roles(
    user_id: UUID,
    payload: EmployeeRolesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    u = _get_user_or_404(db, user_id)
    change = set_employee_roles(
        db,
        actor=current_user,
        user=u,
        roles={r.value for r in payload.roles},
        work_unit_id=payload.work_unit_id,
    )
    db.commit()
    invalidate_dashboard()

    db.refresh(u)
    return EmployeeRolesOut(employee=employee_to_out(db, u), headship=headship_to_out(change))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_employee(
    user_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    u = _get_user_or_404(db, user_id)

    assignment_count = (
        db.query(assignment_participants.c.assignment_id)
        .filter(assignment_participants.c.user_id == u.id)
        .count()
    )
    if assignment_count:
        raise HTTPException(
            status_code=409,
            detail=f"Employee takes part in {assignment_count} assignment(s) and cannot be deleted",
        )

    log_event(
        db=db,
        actor=current_user,
        action="EMPLOYEE_DELETED",
        entity_type="user",
        entity_id=u.id,
        metadata={"full_name": u.full_name, "email": u.email, "nip": u.nip},
    )
    db.delete(u)
    db.commit()
    invalidate_dashboard()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
