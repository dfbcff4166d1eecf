"""
Dashboard aggregation.

Counts are bucketed by calendar month/year: reports by created_at,
"assignments this month/year" by start_date, and the core "assignments this
month" figure by created_at. Leader report counts are limited to the unit's
employees while leader assignment counts stay global.
"""
import logging
from datetime import date, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from travel_desk.core.cache import TTLCache
from travel_desk.core.config import settings
from travel_desk.core.rbac import ADMIN_ROLES, RoleFlags
from travel_desk.core.visibility import assignment_scope, report_scope, unit_member_ids
from travel_desk.models.assignment import Assignment, AssignmentDocumentation
from travel_desk.models.enums import ReportStatus, ReviewStatus
from travel_desk.models.fullboard_price import FullboardPrice
from travel_desk.models.rbac import Role, UserRole
from travel_desk.models.report import Report
from travel_desk.models.review import ReportReview
from travel_desk.models.user import User
from travel_desk.models.work_unit import WorkUnit
from travel_desk.schemas.dashboard import (
    AdminStats,
    CoreStats,
    DashboardStats,
    PeriodStats,
    RecentAssignment,
    RecentReport,
)

logger = logging.getLogger(__name__)

CACHE_PREFIX = "dashboard:"
CORE_STATS_KEY = f"{CACHE_PREFIX}core_stats"
RECENT_LIMIT = 5

dashboard_cache = TTLCache()


# ---- period helpers ----

def month_start(day: date) -> date:
    return day.replace(day=1)


def next_month_start(day: date) -> date:
    first = month_start(day)
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)


def previous_month_start(day: date) -> date:
    return month_start(month_start(day) - timedelta(days=1))


def _at_midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


def _created_within(column, start: date, end: date):
    return (column >= _at_midnight(start)) & (column < _at_midnight(end))


def _starts_within(start: date, end: date):
    return (Assignment.start_date >= start) & (Assignment.start_date < end)


def _count(db: Session, column, *criteria) -> int:
    return db.query(func.count(column)).filter(*criteria).scalar() or 0


def _report_counts(db: Session, *criteria) -> dict[str, int]:
    rows = (
        db.query(Report.status, func.count(Report.id))
        .filter(*criteria)
        .group_by(Report.status)
        .all()
    )
    counts = {s.value: 0 for s in ReportStatus}
    for status, n in rows:
        counts[status] = n
    return counts


def _period_stats(db: Session, today: date, report_criteria=(), assignment_criteria=()) -> PeriodStats:
    month_from, month_to = month_start(today), next_month_start(today)
    year_from, year_to = date(today.year, 1, 1), date(today.year + 1, 1, 1)

    counts = _report_counts(db, *report_criteria, _created_within(Report.created_at, month_from, month_to))
    return PeriodStats(
        reports_approved=counts[ReportStatus.APPROVED.value],
        reports_submitted=counts[ReportStatus.SUBMITTED.value],
        reports_rejected=counts[ReportStatus.REJECTED.value],
        reports_draft=counts[ReportStatus.DRAFT.value],
        reports_total=sum(counts.values()),
        assignments_this_month=_count(db, Assignment.id, *assignment_criteria, _starts_within(month_from, month_to)),
        assignments_this_year=_count(db, Assignment.id, *assignment_criteria, _starts_within(year_from, year_to)),
    )


# ---- blocks ----

def compute_core_stats(db: Session, today: date) -> CoreStats:
    month_from, month_to = month_start(today), next_month_start(today)
    last_month_from = previous_month_start(today)

    counts = _report_counts(db)
    approved = counts[ReportStatus.APPROVED.value]
    submitted = counts[ReportStatus.SUBMITTED.value]
    rejected = counts[ReportStatus.REJECTED.value]

    return CoreStats(
        total_assignments=_count(db, Assignment.id),
        total_documentations=_count(db, AssignmentDocumentation.id),
        assignments_this_month=_count(db, Assignment.id, _created_within(Assignment.created_at, month_from, month_to)),
        reports_this_month=_count(db, Report.id, _created_within(Report.created_at, month_from, month_to)),
        reports_last_month=_count(db, Report.id, _created_within(Report.created_at, last_month_from, month_from)),
        approved_reports=approved,
        submitted_reports=submitted,
        rejected_reports=rejected,
        total_reports=approved + submitted + rejected,
    )


def compute_admin_stats(db: Session, today: date) -> AdminStats:
    admin_user_ids = (
        select(UserRole.user_id)
        .join(Role, Role.id == UserRole.role_id)
        .where(Role.name.in_(ADMIN_ROLES))
    )
    return AdminStats(
        total_work_units=_count(db, WorkUnit.id),
        total_employees=_count(db, User.id, User.id.not_in(admin_user_ids)),
        total_fullboard_prices=_count(db, FullboardPrice.id),
        reports_by_status=_report_counts(db),
        total_reviews=_count(db, ReportReview.id),
        approved_reviews=_count(db, ReportReview.id, ReportReview.status == ReviewStatus.APPROVED.value),
        rejected_reviews=_count(db, ReportReview.id, ReportReview.status == ReviewStatus.REJECTED.value),
        period=_period_stats(db, today),
    )


def compute_leader_stats(db: Session, leader: User, today: date) -> PeriodStats:
    employee_ids = unit_member_ids(leader.id, employees_only=True)
    month_assignment_ids = select(Assignment.id).where(
        Assignment.participants.any(User.id.in_(employee_ids)),
        _starts_within(month_start(today), next_month_start(today)),
    )
    return _period_stats(
        db,
        today,
        report_criteria=(
            Report.user_id.in_(employee_ids),
            Report.assignment_id.in_(month_assignment_ids),
        ),
    )


def compute_employee_stats(db: Session, user: User, today: date) -> PeriodStats:
    return _period_stats(
        db,
        today,
        report_criteria=(Report.user_id == user.id,),
        assignment_criteria=(Assignment.participants.any(User.id == user.id),),
    )


def recent_activity(db: Session, actor: User, flags: RoleFlags, limit: int = RECENT_LIMIT):
    reports = (
        db.query(Report)
        .options(joinedload(Report.user))
        .filter(report_scope(actor, flags))
        .order_by(Report.created_at.desc())
        .limit(limit)
        .all()
    )
    assignments = (
        db.query(Assignment)
        .filter(assignment_scope(actor, flags))
        .order_by(Assignment.created_at.desc())
        .limit(limit)
        .all()
    )
    return (
        [
            RecentReport(
                id=str(r.id),
                status=r.status,
                travel_type=r.travel_type,
                travel_purpose=r.travel_purpose,
                destination_city=r.destination_city,
                user_name=r.user.full_name if r.user else None,
                created_at=r.created_at,
            )
            for r in reports
        ],
        [
            RecentAssignment(
                id=str(a.id),
                purpose=a.purpose,
                destination=a.destination,
                start_date=a.start_date,
                end_date=a.end_date,
                created_at=a.created_at,
            )
            for a in assignments
        ],
    )


def compute_dashboard(
    db: Session,
    actor: User,
    flags: RoleFlags,
    *,
    today: date | None = None,
    core: CoreStats | None = None,
) -> DashboardStats:
    today = today or datetime.utcnow().date()

    stats = DashboardStats(
        roles={
            "is_admin_or_superadmin": flags.is_admin_or_superadmin,
            "is_leader": flags.is_leader,
            "is_verificator": flags.is_verificator,
            "is_employee": flags.is_employee,
        },
        core=core or compute_core_stats(db, today),
        generated_at=datetime.utcnow(),
    )

    if flags.is_admin_or_superadmin:
        stats.admin = compute_admin_stats(db, today)
    if flags.is_leader:
        stats.leader = compute_leader_stats(db, actor, today)
    if flags.is_verificator:
        # same keys as the leader block, global counts; wins when both roles are held
        stats.leader = _period_stats(db, today)
    if flags.is_employee:
        stats.employee = compute_employee_stats(db, actor, today)

    stats.recent_reports, stats.recent_assignments = recent_activity(db, actor, flags)
    return stats


# ---- caching ----

def dashboard_cache_key(actor: User, flags: RoleFlags) -> str:
    return f"{CACHE_PREFIX}user_{actor.id}_{flags.cache_key}"


def get_dashboard(db: Session, actor: User, flags: RoleFlags) -> DashboardStats:
    ttl = settings.DASHBOARD_CACHE_TTL_SECONDS
    today = datetime.utcnow().date()
    core = dashboard_cache.remember(CORE_STATS_KEY, ttl, lambda: compute_core_stats(db, today))
    return dashboard_cache.remember(
        dashboard_cache_key(actor, flags),
        ttl,
        lambda: compute_dashboard(db, actor, flags, today=today, core=core),
    )


def invalidate_dashboard() -> None:
    """Drop cached dashboard blocks after a write that changes the counts."""
    dashboard_cache.forget_prefix(CACHE_PREFIX)


def clear_dashboard_cache() -> None:
    dashboard_cache.clear()
    logger.info("Dashboard cache cleared")
