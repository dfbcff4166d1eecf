from datetime import datetime
from pydantic import BaseModel, Field

from travel_desk.models.enums import ReviewerType, ReviewStatus


class ReviewCreate(BaseModel):
    reviewer_type: ReviewerType
    status: ReviewStatus
    notes: str | None = Field(default=None, max_length=2000)


class ReviewOut(BaseModel):
    id: str
    report_id: str
    reviewer_id: str | None = None
    reviewer_name: str | None = None
    reviewer_type: str
    status: str
    notes: str | None = None
    created_at: datetime
