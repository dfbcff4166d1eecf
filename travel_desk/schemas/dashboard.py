from datetime import date, datetime
from pydantic import BaseModel


class CoreStats(BaseModel):
    """Shown to every role"""
    total_assignments: int = 0
    total_documentations: int = 0
    assignments_this_month: int = 0  # by created_at
    reports_this_month: int = 0
    reports_last_month: int = 0
    approved_reports: int = 0
    submitted_reports: int = 0
    rejected_reports: int = 0
    total_reports: int = 0  # approved + submitted + rejected, drafts excluded


class PeriodStats(BaseModel):
    """Reports created this month by status, assignments by start_date"""
    reports_approved: int = 0
    reports_submitted: int = 0
    reports_rejected: int = 0
    reports_draft: int = 0
    reports_total: int = 0
    assignments_this_month: int = 0
    assignments_this_year: int = 0


class AdminStats(BaseModel):
    total_work_units: int = 0
    total_employees: int = 0  # users without admin/superadmin roles
    total_fullboard_prices: int = 0
    reports_by_status: dict[str, int] = {}  # all time
    total_reviews: int = 0
    approved_reviews: int = 0
    rejected_reviews: int = 0
    period: PeriodStats = PeriodStats()


class RecentReport(BaseModel):
    id: str
    status: str
    travel_type: str
    travel_purpose: str
    destination_city: str
    user_name: str | None = None
    created_at: datetime


class RecentAssignment(BaseModel):
    id: str
    purpose: str
    destination: str
    start_date: date
    end_date: date
    created_at: datetime


class DashboardStats(BaseModel):
    roles: dict[str, bool]
    core: CoreStats
    admin: AdminStats | None = None
    # filled by leader (unit-scoped reports) or verificator (global)
    leader: PeriodStats | None = None
    employee: PeriodStats | None = None
    recent_reports: list[RecentReport] = []
    recent_assignments: list[RecentAssignment] = []
    generated_at: datetime
