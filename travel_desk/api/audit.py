from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from travel_desk.core.rbac import ADMIN_ROLES, require_roles
from travel_desk.db.session import get_db
from travel_desk.models.audit_event import AuditEvent
from travel_desk.models.user import User

router = APIRouter(prefix="/audit", tags=["audit"])


def to_dict(e: AuditEvent, actor_names: dict) -> dict:
    return {
        "id": str(e.id),
        "actor_user_id": str(e.actor_user_id) if e.actor_user_id else None,
        "actor_name": actor_names.get(e.actor_user_id),
        "action": e.action,
        "entity_type": e.entity_type,
        "entity_id": str(e.entity_id),
        "metadata": e.event_metadata,
        "created_at": e.created_at,
    }


@router.get("")
def list_audit_events(
    entity_type: str | None = Query(default=None, description="assignment, report, user, work_unit, ..."),
    entity_id: UUID | None = Query(default=None),
    action: str | None = Query(default=None, description="e.g. REPORT_SUBMITTED"),
    actor_user_id: UUID | None = Query(default=None),
    since: datetime | None = Query(default=None, description="Only events at or after this instant"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _=Depends(require_roles(*ADMIN_ROLES)),
):
    """Newest first."""
    q = db.query(AuditEvent)

    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if action:
        q = q.filter(AuditEvent.action == action.upper())
    if actor_user_id:
        q = q.filter(AuditEvent.actor_user_id == actor_user_id)
    if since:
        q = q.filter(AuditEvent.created_at >= since)

    rows = q.order_by(AuditEvent.created_at.desc()).offset(offset).limit(limit).all()

    actor_ids = {r.actor_user_id for r in rows if r.actor_user_id}
    actor_names = {}
    if actor_ids:
        actor_names = dict(db.query(User.id, User.full_name).filter(User.id.in_(actor_ids)).all())

    return [to_dict(r, actor_names) for r in rows]
