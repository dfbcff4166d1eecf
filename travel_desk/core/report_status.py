"""
Report status derivation.

`reports.status` is a stored column kept in step with the report's reviews:
every review insert/delete goes through `recompute_report_status`, and the
owner's submit transition is the only other writer. Status writes never touch
`reports.updated_at`, so that column keeps meaning "last content edit", which
is what resubmission eligibility compares against.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Protocol

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from travel_desk.models.enums import ReportStatus, ReviewerType, ReviewStatus
from travel_desk.models.report import Report
from travel_desk.models.review import ReportReview

logger = logging.getLogger(__name__)

REQUIRED_REVIEWER_TYPES = frozenset(t.value for t in ReviewerType)
DECISIVE_REVIEW_STATUSES = frozenset(s.value for s in ReviewStatus)


class ReviewLike(Protocol):
    reviewer_type: str
    status: str


def _value(v) -> str:
    return getattr(v, "value", v)


def resolve_status(current: str, reviews: Iterable[ReviewLike]) -> str:
    """
    Status implied by a set of reviews.

    Any rejection wins. Approval needs an approved review from every reviewer
    type. Reviews that are present but incomplete keep the report under review.
    With no reviews at all the owner-controlled status (draft/submitted) is kept.
    """
    pairs = [(_value(r.reviewer_type), _value(r.status)) for r in reviews]
    current = _value(current)

    if not pairs:
        if current in (ReportStatus.DRAFT.value, ReportStatus.SUBMITTED.value):
            return current
        # a verdict with nothing behind it falls back to "under review"
        return ReportStatus.SUBMITTED.value

    if any(status == ReviewStatus.REJECTED.value for _, status in pairs):
        return ReportStatus.REJECTED.value

    approved_types = {rtype for rtype, status in pairs if status == ReviewStatus.APPROVED.value}
    if REQUIRED_REVIEWER_TYPES <= approved_types:
        return ReportStatus.APPROVED.value

    return ReportStatus.SUBMITTED.value


def write_status(db: Session, report: Report, new_status: str) -> bool:
    """Persist `new_status` without bumping report.updated_at. Returns True if it changed."""
    new_status = _value(new_status)
    if report.status == new_status:
        return False

    db.execute(
        update(Report)
        .where(Report.id == report.id)
        .values(status=new_status, updated_at=Report.updated_at)
        .execution_options(synchronize_session=False)
    )
    set_committed_value(report, "status", new_status)
    return True


def recompute_report_status(db: Session, report: Report) -> str:
    db.flush()
    reviews = db.query(ReportReview).filter(ReportReview.report_id == report.id).all()
    new_status = resolve_status(report.status, reviews)
    if write_status(db, report, new_status):
        logger.info("Report %s status -> %s", report.id, new_status)
    return new_status


def update_all_report_statuses(db: Session) -> int:
    """
    Recompute the status of every report. Safe to run repeatedly.

    Returns the number of reports whose status changed.
    """
    changed = 0
    total = 0
    reports = db.query(Report).options(selectinload(Report.reviews)).order_by(Report.created_at).all()
    for report in reports:
        total += 1
        if write_status(db, report, resolve_status(report.status, report.reviews)):
            changed += 1
    logger.info("Recomputed report statuses: %s checked, %s changed", total, changed)
    return changed


# ---- resubmission eligibility ----

def _utc_naive(ts: datetime) -> datetime:
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def last_decisive_review_at(report: Report) -> datetime | None:
    stamps = [r.created_at for r in report.reviews if _value(r.status) in DECISIVE_REVIEW_STATUSES]
    if not stamps:
        return None
    return max(stamps, key=_utc_naive)


def _edit_timestamps(report: Report) -> list[datetime]:
    stamps = [report.updated_at]
    for related in (
        report.in_city_report,
        report.out_city_report,
        report.out_country_report,
        report.travel_report,
    ):
        if related is not None:
            stamps.append(related.updated_at)
    if report.assignment is not None:
        stamps.extend(doc.updated_at for doc in report.assignment.documentations)
    return [ts for ts in stamps if ts is not None]


def can_resubmit(report: Report) -> bool:
    """
    True when a rejected report has been edited after its last verdict.

    Edits count on the report row, its expense and narrative records, and the
    assignment's documentation.
    """
    if report.status != ReportStatus.REJECTED.value:
        return False

    last_review_at = last_decisive_review_at(report)
    if last_review_at is None:
        return False

    cutoff = _utc_naive(last_review_at)
    return any(_utc_naive(ts) > cutoff for ts in _edit_timestamps(report))
