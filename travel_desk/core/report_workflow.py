from fastapi import HTTPException
from sqlalchemy.orm import Session

from travel_desk.core.rbac import actor_has_permission
from travel_desk.core.report_status import can_resubmit, recompute_report_status, write_status
from travel_desk.models.enums import ReportStatus, ReviewerType
from travel_desk.models.report import Report
from travel_desk.models.review import ReportReview
from travel_desk.models.user import User
from travel_desk.models.work_unit import WorkUnit


def assert_report_owner(report: Report, user: User):
    if report.user_id != user.id:
        raise HTTPException(status_code=403, detail="Only the report owner can perform this action")


def assert_report_editable(report: Report):
    if not report.is_editable:
        raise HTTPException(
            status_code=409,
            detail=f"Report can only be changed while draft or rejected (current: {report.status})",
        )


def missing_for_submission(report: Report) -> list[dict]:
    errors: list[dict] = []
    if not report.travel_order_file:
        errors.append({"field": "travel_order_file", "code": "required", "message": "Travel order file is required"})
    if not report.spd_file:
        errors.append({"field": "spd_file", "code": "required", "message": "SPD file is required"})
    if report.expense_detail is None:
        errors.append({"field": "expense", "code": "required", "message": f"{report.travel_type} expense details are required"})
    if report.travel_report is None:
        errors.append({"field": "travel_report", "code": "required", "message": "Travel report is required"})
    return errors


def submit_report(db: Session, report: Report, actor: User) -> Report:
    """
    Owner finalizes a draft, or re-enters a rejected report into review.

    A rejected report must have been edited after its last verdict; its old
    reviews are discarded so both reviewer types decide again.
    """
    assert_report_owner(report, actor)

    if report.status not in (ReportStatus.DRAFT.value, ReportStatus.REJECTED.value):
        raise HTTPException(
            status_code=409,
            detail=f"Only draft or rejected reports can be submitted (current: {report.status})",
        )

    errors = missing_for_submission(report)
    if errors:
        raise HTTPException(
            status_code=422,
            detail={"message": "Report is incomplete", "errors": errors},
        )

    if report.status == ReportStatus.REJECTED.value:
        if not can_resubmit(report):
            raise HTTPException(
                status_code=409,
                detail="Report has not been changed since it was rejected",
            )
        report.reviews.clear()
        db.flush()

    write_status(db, report, ReportStatus.SUBMITTED.value)
    return report


def assert_can_review(db: Session, actor: User, report: Report, reviewer_type: str):
    if reviewer_type not in {t.value for t in ReviewerType}:
        raise HTTPException(status_code=422, detail=f"Unknown reviewer type: {reviewer_type}")

    if not actor_has_permission(db, actor, f"reports.review.{reviewer_type}"):
        who = "a verificator" if reviewer_type == ReviewerType.COMMITMENT_OFFICER.value else "a leader"
        raise HTTPException(status_code=403, detail=f"Only {who} can review as {reviewer_type.replace('_', ' ')}")

    if reviewer_type == ReviewerType.SECTION_HEAD.value:
        owner = report.user
        unit = db.get(WorkUnit, owner.work_unit_id) if owner and owner.work_unit_id else None
        if unit is None or unit.head_id != actor.id:
            raise HTTPException(
                status_code=403,
                detail="Section head reviews are limited to reports from the leader's own work unit",
            )


def record_review(
    db: Session,
    *,
    actor: User,
    report: Report,
    reviewer_type: str,
    review_status: str,
    notes: str | None = None,
) -> ReportReview:
    assert_can_review(db, actor, report, reviewer_type)

    if report.status != ReportStatus.SUBMITTED.value:
        raise HTTPException(
            status_code=409,
            detail=f"Only submitted reports can be reviewed (current: {report.status})",
        )

    if any(r.reviewer_type == reviewer_type for r in report.reviews):
        raise HTTPException(status_code=409, detail=f"Report already has a {reviewer_type} review")

    review = ReportReview(
        report=report,
        reviewer_id=actor.id,
        reviewer_type=reviewer_type,
        status=review_status,
        notes=notes,
    )
    db.add(review)
    db.flush()

    recompute_report_status(db, report)
    return review
