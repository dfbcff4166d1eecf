from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.rbac import ADMIN_ROLES, require_roles
from travel_desk.core.report_status import update_all_report_statuses
from travel_desk.db.session import get_db
from travel_desk.models.user import User

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/ping")
def admin_ping(current_user: User = Depends(require_roles(*ADMIN_ROLES))):
    return {"status": "ok", "admin": current_user.email}


@router.post("/reports/recompute-statuses")
def recompute_statuses(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*ADMIN_ROLES)),
):
    """Re-derive every report's status from its reviews."""
    changed = update_all_report_statuses(db)
    log_event(
        db=db,
        actor=current_user,
        action="REPORT_STATUSES_RECOMPUTED",
        entity_type="system",
        entity_id=current_user.id,
        metadata={"changed": changed},
    )
    db.commit()
    if changed:
        invalidate_dashboard()
    return {"status": "ok", "changed": changed}
