from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from travel_desk.models.assignment import Assignment, AssignmentDocumentation
from travel_desk.models.expense import InCityReport
from travel_desk.models.rbac import Role, UserRole
from travel_desk.models.report import Report
from travel_desk.models.review import ReportReview
from travel_desk.models.travel_report import TravelReport
from travel_desk.models.user import User
from travel_desk.models.work_unit import WorkUnit


def ensure_role(db, name: str) -> Role:
    r = db.query(Role).filter(Role.name == name).one_or_none()
    if r:
        return r
    r = Role(name=name)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


def create_user(db, email: str | None, full_name="User", roles=("employee",), work_unit: WorkUnit | None = None) -> User:
    u = User(email=email, full_name=full_name, is_active=True, work_unit_id=work_unit.id if work_unit else None)
    db.add(u)
    db.commit()
    db.refresh(u)
    for name in roles:
        grant_role(db, u, name)
    return u


def grant_role(db, user: User, role_name: str):
    role = ensure_role(db, role_name)
    exists = db.query(UserRole).filter(UserRole.user_id == user.id, UserRole.role_id == role.id).one_or_none()
    if not exists:
        db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()


def create_work_unit(db, code: str, name: str = "Unit", head: User | None = None) -> WorkUnit:
    w = WorkUnit(code=code, name=name, head_id=head.id if head else None)
    db.add(w)
    db.commit()
    db.refresh(w)
    return w


def make_leader(db, user: User, unit: WorkUnit):
    """Grant leader, move the user into `unit` and make them its head."""
    grant_role(db, user, "leader")
    user.work_unit_id = unit.id
    unit.head_id = user.id
    db.commit()


def headers(user_or_email) -> dict:
    email = user_or_email if isinstance(user_or_email, str) else user_or_email.email
    return {"X-User-Email": email}


def create_assignment(
    db,
    creator: User,
    participants: list[User],
    *,
    destination="Bandung",
    purpose="Coordination meeting with the provincial office",
    start: date | None = None,
    days: int = 2,
) -> Assignment:
    start = start or date.today()
    a = Assignment(
        purpose=purpose,
        destination=destination,
        start_date=start,
        end_date=start + timedelta(days=days),
        creator_id=creator.id,
    )
    a.participants = list(participants)
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


def store_file(storage, name="document.pdf", owner_id="test", directory="reports", content=b"%PDF-1.4 test") -> str:
    return storage.store(content, name, directory, owner_id, kind="document")


def create_report(
    db: Session,
    owner: User,
    assignment: Assignment,
    *,
    travel_type="in_city",
    status="draft",
    travel_order_file: str | None = "reports/order.pdf",
    spd_file: str | None = "reports/spd.pdf",
) -> Report:
    r = Report(
        user_id=owner.id,
        assignment_id=assignment.id,
        travel_type=travel_type,
        status=status,
        travel_order_number="ST-001/2025",
        destination_city=assignment.destination,
        departure_date=assignment.start_date,
        return_date=assignment.end_date,
        actual_duration=2,
        travel_purpose=assignment.purpose,
        travel_order_file=travel_order_file,
        spd_file=spd_file,
    )
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


def add_in_city_expense(db, report: Report, daily_allowance="150000.00") -> InCityReport:
    e = InCityReport(report_id=report.id, daily_allowance=Decimal(daily_allowance))
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def add_travel_report(db, report: Report, title="Field visit to the provincial office") -> TravelReport:
    t = TravelReport(report_id=report.id, title=title, conclusions="Objectives met.")
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def create_complete_report(db, owner: User, assignment: Assignment, *, status="draft") -> Report:
    """In-city report with documents, expenses and narrative filled in."""
    r = create_report(db, owner, assignment, status=status)
    add_in_city_expense(db, r)
    add_travel_report(db, r)
    db.refresh(r)
    return r


def add_review(db, report: Report, reviewer: User | None, reviewer_type: str, status: str, created_at: datetime | None = None) -> ReportReview:
    rv = ReportReview(
        report_id=report.id,
        reviewer_id=reviewer.id if reviewer else None,
        reviewer_type=reviewer_type,
        status=status,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(rv)
    db.commit()
    db.refresh(rv)
    return rv


def add_documentation(db, assignment: Assignment, uploader: User, photo="documentations/site.jpg") -> AssignmentDocumentation:
    d = AssignmentDocumentation(assignment_id=assignment.id, uploaded_by_id=uploader.id, photo=photo)
    db.add(d)
    db.commit()
    db.refresh(d)
    return d


def backdate(db, obj, **columns):
    """Force timestamp columns to given values; onupdate would otherwise overwrite them."""
    table = type(obj).__table__
    db.execute(table.update().where(table.c.id == obj.id).values(**columns))
    db.commit()
    db.refresh(obj)
