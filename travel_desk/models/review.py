import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from travel_desk.db.base import Base
from travel_desk.models.enums import ReviewerType, ReviewStatus, check_in


class ReportReview(Base):
    __tablename__ = "report_reviews"
    __table_args__ = (
        # one decisive verdict per reviewer type and report
        UniqueConstraint("report_id", "reviewer_type", name="uq_report_review_type"),
        CheckConstraint(check_in("reviewer_type", ReviewerType), name="ck_report_reviews_reviewer_type"),
        CheckConstraint(check_in("status", ReviewStatus), name="ck_report_reviews_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    report_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Never rewritten when headship moves; authorship stays with whoever reviewed
    reviewer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    reviewer_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    report = relationship("Report", back_populates="reviews")
    reviewer = relationship("User")
