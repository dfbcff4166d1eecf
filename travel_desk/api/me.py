from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from travel_desk.api.reports import to_out as report_to_out
from travel_desk.core.rbac import RoleFlags, get_role_flags, get_user_role_names, permissions_for
from travel_desk.core.security import get_current_user
from travel_desk.db.session import get_db
from travel_desk.models.enums import ReportStatus
from travel_desk.models.report import Report
from travel_desk.models.user import User
from travel_desk.schemas.report import ReportOut

router = APIRouter(tags=["auth"])


@router.get("/me")
def me(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    flags: RoleFlags = Depends(get_role_flags),
):
    """Current user with roles and work unit"""
    unit = current_user.work_unit
    role_names = get_user_role_names(db, current_user)
    return {
        "id": str(current_user.id),
        "email": current_user.email,
        "full_name": current_user.full_name,
        "nip": current_user.nip,
        "is_active": current_user.is_active,
        "roles": sorted(role_names),
        "permissions": sorted(permissions_for(role_names)),
        "work_unit": {"id": str(unit.id), "name": unit.name, "code": unit.code} if unit else None,
        "heads_work_unit": bool(unit and unit.head_id == current_user.id),
        "can_create_assignments": flags.is_admin_or_superadmin or flags.is_leader,
    }


@router.get("/me/reports", response_model=list[ReportOut])
def my_reports(
    status: ReportStatus | None = Query(default=None, description="Filter by status"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The caller's own reports in every status."""
    query = db.query(Report).filter(Report.user_id == current_user.id)
    if status:
        query = query.filter(Report.status == status.value)

    reports = query.order_by(Report.created_at.desc()).offset(offset).limit(limit).all()
    return [report_to_out(r) for r in reports]
