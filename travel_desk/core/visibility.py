"""
Role-scoped read filters for assignments and reports.

Each function returns a SQL boolean expression to drop into `.filter(...)`.
Precedence when an actor holds several roles: admin/superadmin, then leader,
then verificator, then plain owner/participant.
"""
from datetime import date
from uuid import UUID

from sqlalchemy import and_, or_, select, true
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import ColumnElement

from travel_desk.core.rbac import RoleFlags
from travel_desk.models.assignment import Assignment
from travel_desk.models.enums import RoleName
from travel_desk.models.rbac import Role, UserRole
from travel_desk.models.report import Report
from travel_desk.models.user import User
from travel_desk.models.work_unit import WorkUnit


def assignment_scope(actor: User, flags: RoleFlags) -> ColumnElement[bool]:
    # leaders read every assignment, not only their unit's
    if flags.sees_all_assignments:
        return true()
    return Assignment.participants.any(User.id == actor.id)


def assignment_search(term: str, flags: RoleFlags) -> ColumnElement[bool]:
    like = f"%{term.strip()}%"
    clauses = [Assignment.destination.ilike(like), Assignment.purpose.ilike(like)]
    if flags.is_admin_or_superadmin or flags.is_verificator:
        clauses.append(Assignment.participants.any(User.full_name.ilike(like)))
    return or_(*clauses)


def assignment_on_day(day: date) -> ColumnElement[bool]:
    return Assignment.start_date == day


def assignment_has_reports(has_reports: bool) -> ColumnElement[bool]:
    exists = Assignment.reports.any()
    return exists if has_reports else ~exists


def unit_member_ids(leader_id: UUID, employees_only: bool = False):
    """Subquery of user ids in the work unit headed by `leader_id`."""
    member = aliased(User)
    stmt = (
        select(member.id)
        .join(WorkUnit, member.work_unit_id == WorkUnit.id)
        .where(WorkUnit.head_id == leader_id)
    )
    if employees_only:
        stmt = stmt.where(
            member.id.in_(
                select(UserRole.user_id)
                .join(Role, Role.id == UserRole.role_id)
                .where(Role.name == RoleName.EMPLOYEE.value)
            )
        )
    return stmt


def report_scope(actor: User, flags: RoleFlags) -> ColumnElement[bool]:
    if flags.is_admin_or_superadmin:
        return true()
    if flags.is_leader:
        return Report.user_id.in_(unit_member_ids(actor.id, employees_only=True))
    if flags.is_verificator:
        return true()
    return Report.user_id == actor.id


def report_is_complete() -> ColumnElement[bool]:
    """Reports with both documents, their expense record and a travel narrative."""
    return and_(
        Report.travel_order_file.is_not(None),
        Report.spd_file.is_not(None),
        or_(
            Report.in_city_report.has(),
            Report.out_city_report.has(),
            Report.out_country_report.has(),
        ),
        Report.travel_report.has(),
    )


def reviewer_listing(flags: RoleFlags) -> bool:
    """Verificators and leaders browse reports as a review queue."""
    return flags.is_verificator or flags.is_leader


def report_search(term: str) -> ColumnElement[bool]:
    like = f"%{term.strip()}%"
    return or_(
        Report.travel_purpose.ilike(like),
        Report.destination_city.ilike(like),
        Report.user.has(User.full_name.ilike(like)),
        Report.assignment.has(Assignment.purpose.ilike(like)),
    )
