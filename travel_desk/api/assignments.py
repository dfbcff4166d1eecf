import logging
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session, selectinload

from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.expenses import assignment_file_paths, delete_unreferenced
from travel_desk.core.notifications import (
    ASSIGNMENT_CREATED,
    ASSIGNMENT_UPDATED,
    NotificationSink,
    get_notification_sink,
    notify_participants,
)
from travel_desk.core.rbac import ASSIGNMENT_CREATOR_ROLES, RoleFlags, get_role_flags, require_roles
from travel_desk.core.security import get_current_user
from travel_desk.core.storage import LocalFileStorage, get_file_storage
from travel_desk.core.visibility import (
    assignment_has_reports,
    assignment_on_day,
    assignment_scope,
    assignment_search,
)
from travel_desk.db.session import get_db
from travel_desk.models.assignment import Assignment
from travel_desk.models.user import User
from travel_desk.schemas.assignment import (
    AssignmentBulkDelete,
    AssignmentCreate,
    AssignmentOut,
    AssignmentUpdate,
    ParticipantOut,
)
from travel_desk.schemas.pagination import paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assignments", tags=["assignments"])


def to_out(a: Assignment) -> AssignmentOut:
    return AssignmentOut(
        id=str(a.id),
        purpose=a.purpose,
        destination=a.destination,
        start_date=a.start_date,
        end_date=a.end_date,
        creator_id=str(a.creator_id) if a.creator_id else None,
        participants=[ParticipantOut(id=str(u.id), full_name=u.full_name, email=u.email) for u in a.participants],
        report_count=len(a.reports),
        documentation_count=len(a.documentations),
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


def _get_assignment_or_404(db: Session, assignment_id: UUID) -> Assignment:
    a = db.get(Assignment, assignment_id)
    if not a:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return a


def _assert_creator(a: Assignment, user: User):
    if a.creator_id != user.id:
        raise HTTPException(status_code=403, detail="Only the assignment creator can modify or delete it")


def _load_participants(db: Session, user_ids: list[UUID]) -> list[User]:
    wanted = list(dict.fromkeys(user_ids))
    users = db.query(User).filter(User.id.in_(wanted)).all()
    found = {u.id for u in users}
    missing = [str(uid) for uid in wanted if uid not in found]
    if missing:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Unknown participants",
                "errors": [{"field": "user_ids", "code": "not_found", "message": f"User {m} does not exist"} for m in missing],
            },
        )
    return users


def _snapshot(a: Assignment) -> dict:
    return {
        "purpose": a.purpose,
        "destination": a.destination,
        "start_date": str(a.start_date),
        "end_date": str(a.end_date),
        "participant_ids": sorted(str(u.id) for u in a.participants),
    }


@router.get("")
def list_assignments(
    search: str | None = Query(default=None, description="Search destination/purpose (and participant name for admin/verificator)"),
    on_date: date | None = Query(default=None, alias="date", description="Exact start_date match"),
    has_reports: bool | None = Query(default=None, description="Only assignments with (true) or without (false) reports"),
    limit: int = Query(default=12, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
):
    """
    List assignments visible to the caller.

    Employees see the assignments they take part in; admin, superadmin,
    leader and verificator see all of them.
    """
    query = (
        db.query(Assignment)
        .options(
            selectinload(Assignment.participants),
            selectinload(Assignment.reports),
            selectinload(Assignment.documentations),
        )
        .filter(assignment_scope(current_user, flags))
    )

    if search:
        query = query.filter(assignment_search(search, flags))
    if on_date:
        query = query.filter(assignment_on_day(on_date))
    if has_reports is not None:
        query = query.filter(assignment_has_reports(has_reports))

    query = query.order_by(Assignment.start_date.desc(), Assignment.created_at.desc())

    page = paginate(query, limit=limit, offset=offset, convert=to_out)
    if include_pagination:
        return page
    return page.items


@router.get("/{assignment_id}", response_model=AssignmentOut)
def get_assignment(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
):
    a = (
        db.query(Assignment)
        .filter(Assignment.id == assignment_id, assignment_scope(current_user, flags))
        .one_or_none()
    )
    if not a:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return to_out(a)


@router.post("", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ASSIGNMENT_CREATOR_ROLES)),
    sink: NotificationSink = Depends(get_notification_sink),
):
    participants = _load_participants(db, payload.user_ids)

    # assignment + participants + audit commit together; mail goes out afterwards
    with db.begin_nested():
        a = Assignment(
            purpose=payload.purpose,
            destination=payload.destination,
            start_date=payload.start_date,
            end_date=payload.end_date,
            creator_id=current_user.id,
        )
        a.participants = participants
        db.add(a)
        db.flush()

        log_event(
            db=db,
            actor=current_user,
            action="ASSIGNMENT_CREATED",
            entity_type="assignment",
            entity_id=a.id,
            metadata=_snapshot(a),
        )

    db.commit()
    invalidate_dashboard()

    result = notify_participants(sink, a, participants, template=ASSIGNMENT_CREATED)
    logger.info(
        "Assignment %s created by %s: %s notified, %s skipped, %s failed",
        a.id, current_user.id, len(result.sent), len(result.skipped), len(result.failed),
    )

    db.refresh(a)
    return to_out(a)


@router.put("/{assignment_id}", response_model=AssignmentOut)
def update_assignment(
    assignment_id: UUID,
    payload: AssignmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sink: NotificationSink = Depends(get_notification_sink),
):
    a = _get_assignment_or_404(db, assignment_id)
    _assert_creator(a, current_user)

    participants = _load_participants(db, payload.user_ids)
    before = _snapshot(a)
    original_ids = a.participant_ids
    added = [u for u in participants if u.id not in original_ids]

    with db.begin_nested():
        a.purpose = payload.purpose
        a.destination = payload.destination
        a.start_date = payload.start_date
        a.end_date = payload.end_date
        a.participants = participants
        db.flush()

        log_event(
            db=db,
            actor=current_user,
            action="ASSIGNMENT_UPDATED",
            entity_type="assignment",
            entity_id=a.id,
            metadata={"before": before, "after": _snapshot(a), "added_participant_ids": [str(u.id) for u in added]},
        )

    db.commit()
    invalidate_dashboard()

    if added:
        notify_participants(sink, a, added, template=ASSIGNMENT_UPDATED)

    db.refresh(a)
    return to_out(a)


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    a = _get_assignment_or_404(db, assignment_id)
    _assert_creator(a, current_user)

    files = assignment_file_paths(a)
    log_event(
        db=db,
        actor=current_user,
        action="ASSIGNMENT_DELETED",
        entity_type="assignment",
        entity_id=a.id,
        metadata=_snapshot(a),
    )
    db.delete(a)
    db.commit()
    invalidate_dashboard()

    delete_unreferenced(db, storage, files)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/bulk-delete")
def bulk_delete_assignments(
    payload: AssignmentBulkDelete,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ASSIGNMENT_CREATOR_ROLES)),
    storage: LocalFileStorage = Depends(get_file_storage),
):
    """Role-gated bulk removal. Unlike single delete, rows need not be the caller's own."""
    rows = db.query(Assignment).filter(Assignment.id.in_(payload.ids)).all()

    files: list[str] = []
    with db.begin_nested():
        for a in rows:
            files.extend(assignment_file_paths(a))
            log_event(
                db=db,
                actor=current_user,
                action="ASSIGNMENT_DELETED",
                entity_type="assignment",
                entity_id=a.id,
                metadata={**_snapshot(a), "bulk": True},
            )
            db.delete(a)
        db.flush()

    db.commit()
    invalidate_dashboard()

    delete_unreferenced(db, storage, files)

    found = {a.id for a in rows}
    return {
        "deleted": len(rows),
        "missing_ids": [str(i) for i in payload.ids if i not in found],
    }
