from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from travel_desk.core.dashboard import clear_dashboard_cache, get_dashboard
from travel_desk.core.rbac import ADMIN_ROLES, RoleFlags, get_role_flags, require_roles
from travel_desk.core.security import get_current_user
from travel_desk.db.session import get_db
from travel_desk.models.user import User
from travel_desk.schemas.dashboard import DashboardStats

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardStats)
def dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
):
    """Role-dependent statistics. Blocks the caller's roles don't cover are null."""
    return get_dashboard(db, current_user, flags)


@router.post("/cache/clear")
def clear_cache(_: User = Depends(require_roles(*ADMIN_ROLES))):
    clear_dashboard_cache()
    return {"status": "ok"}
