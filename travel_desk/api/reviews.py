import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from travel_desk.api.reports import get_visible_report_or_404, review_to_out
from travel_desk.core.audit import log_event
from travel_desk.core.dashboard import invalidate_dashboard
from travel_desk.core.rbac import RoleFlags, get_role_flags
from travel_desk.core.report_workflow import record_review
from travel_desk.core.security import get_current_user
from travel_desk.db.session import get_db
from travel_desk.models.report import Report
from travel_desk.models.user import User
from travel_desk.schemas.review import ReviewCreate, ReviewOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports/{report_id}/reviews", tags=["reviews"])


class ReviewRecordedOut(BaseModel):
    review: ReviewOut
    report_status: str


@router.get("", response_model=list[ReviewOut])
def list_reviews(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    flags: RoleFlags = Depends(get_role_flags),
):
    r = get_visible_report_or_404(db, report_id, current_user, flags)
    return [review_to_out(rv) for rv in r.reviews]


@router.post("", response_model=ReviewRecordedOut, status_code=status.HTTP_201_CREATED)
def create_review(
    report_id: UUID,
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Record a commitment officer (verificator) or section head (unit leader) verdict.

    The report status is re-derived from its reviews in the same transaction.
    """
    r = db.get(Report, report_id)
    if not r:
        raise HTTPException(status_code=404, detail="Report not found")

    prev = r.status
    try:
        with db.begin_nested():
            rv = record_review(
                db,
                actor=current_user,
                report=r,
                reviewer_type=payload.reviewer_type.value,
                review_status=payload.status.value,
                notes=payload.notes,
            )
    except IntegrityError:
        raise HTTPException(
            status_code=409,
            detail=f"Report already has a {payload.reviewer_type.value} review",
        )

    log_event(
        db=db,
        actor=current_user,
        action="REPORT_REVIEWED",
        entity_type="report",
        entity_id=r.id,
        metadata={
            "reviewer_type": rv.reviewer_type,
            "review_status": rv.status,
            "from": prev,
            "to": r.status,
        },
    )
    db.commit()
    invalidate_dashboard()

    if prev != r.status:
        logger.info("Report %s moved %s -> %s after %s review", r.id, prev, r.status, rv.reviewer_type)

    return ReviewRecordedOut(review=review_to_out(rv), report_status=r.status)
