from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.rbac import ADMIN_ROLES, require_roles
from travel_desk.core.security import get_current_user
from travel_desk.db.session import get_db
from travel_desk.models.user import User
from travel_desk.models.work_unit import WorkUnit
from travel_desk.schemas.masters import WorkUnitCreate, WorkUnitOut, WorkUnitUpdate

router = APIRouter(prefix="/work-units", tags=["work-units"])


def to_out(w: WorkUnit, member_count: int = 0) -> WorkUnitOut:
    return WorkUnitOut(
        id=str(w.id),
        name=w.name,
        code=w.code,
        description=w.description,
        head_id=str(w.head_id) if w.head_id else None,
        head_name=w.head.full_name if w.head else None,
        member_count=member_count,
        created_at=w.created_at,
    )


def _member_count(db: Session, unit_id) -> int:
    return db.query(func.count(User.id)).filter(User.work_unit_id == unit_id).scalar() or 0


def _get_unit_or_404(db: Session, unit_id: UUID) -> WorkUnit:
    w = db.get(WorkUnit, unit_id)
    if not w:
        raise HTTPException(status_code=404, detail="Work unit not found")
    return w


def _snapshot(w: WorkUnit) -> dict:
    return {
        "name": w.name,
        "code": w.code,
        "description": w.description,
        "head_id": str(w.head_id) if w.head_id else None,
    }


@router.get("", response_model=list[WorkUnitOut])
def list_work_units(
    search: str | None = Query(default=None, description="Search by name or code"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    query = db.query(WorkUnit)
    if search:
        term = f"%{search.lower()}%"
        query = query.filter(WorkUnit.name.ilike(term) | WorkUnit.code.ilike(term))

    counts = dict(
        db.query(User.work_unit_id, func.count(User.id))
        .filter(User.work_unit_id.isnot(None))
        .group_by(User.work_unit_id)
        .all()
    )
    return [to_out(w, counts.get(w.id, 0)) for w in query.order_by(WorkUnit.code.asc()).all()]


@router.get("/{unit_id}", response_model=WorkUnitOut)
def get_work_unit(
    unit_id: UUID,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    w = _get_unit_or_404(db, unit_id)
    return to_out(w, _member_count(db, w.id))


@router.post("", response_model=WorkUnitOut, status_code=status.HTTP_201_CREATED)
def create_work_unit(
    payload: WorkUnitCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    if payload.head_id is not None and not db.get(User, payload.head_id):
        raise HTTPException(status_code=422, detail="Head user does not exist")

    try:
        with db.begin_nested():
            w = WorkUnit(**payload.model_dump())
            db.add(w)
            db.flush()
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Work unit code or head already in use")

    log_event(
        db=db,
        actor=current_user,
        action="WORK_UNIT_CREATED",
        entity_type="work_unit",
        entity_id=w.id,
        metadata=_snapshot(w),
    )
    db.commit()
    invalidate_dashboard()

    db.refresh(w)
    return to_out(w)


@router.patch("/{unit_id}", response_model=WorkUnitOut)
def update_work_unit(
    unit_id: UUID,
    payload: WorkUnitUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    w = _get_unit_or_404(db, unit_id)
    before = _snapshot(w)

    try:
        with db.begin_nested():
            for field_name, value in payload.model_dump(exclude_unset=True).items():
                if value is not None or field_name == "description":
                    setattr(w, field_name, value)
            db.flush()
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Work unit code already in use")

    log_event(
        db=db,
        actor=current_user,
        action="WORK_UNIT_UPDATED",
        entity_type="work_unit",
        entity_id=w.id,
        metadata={"before": before, "after": _snapshot(w)},
    )
    db.commit()

    db.refresh(w)
    return to_out(w, _member_count(db, w.id))


@router.delete("/{unit_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_work_unit(
    unit_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    """Members keep their accounts and end up without a work unit."""
    w = _get_unit_or_404(db, unit_id)

    log_event(
        db=db,
        actor=current_user,
        action="WORK_UNIT_DELETED",
        entity_type="work_unit",
        entity_id=w.id,
        metadata={**_snapshot(w), "member_count": _member_count(db, w.id)},
    )
    db.delete(w)
    db.commit()
    invalidate_dashboard()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
