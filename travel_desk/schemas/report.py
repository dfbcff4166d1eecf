from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from travel_desk.models.enums import TravelType
from travel_desk.schemas.pagination import PaginationMeta
from travel_desk.schemas.review import ReviewOut


class ReportCreate(BaseModel):
    assignment_id: UUID
    travel_type: TravelType
    travel_order_number: str = Field(min_length=1, max_length=100)
    travel_order_file: str = Field(min_length=1, max_length=500)
    spd_file: str = Field(min_length=1, max_length=500)
    actual_duration: int | None = Field(default=None, ge=1)
    transportation_type_ids: list[UUID] = Field(default_factory=list)


class ReportUpdate(BaseModel):
    # travel_type is accepted only so a change attempt can be refused explicitly
    travel_type: TravelType | None = None
    travel_order_number: str | None = Field(default=None, min_length=1, max_length=100)
    travel_order_file: str | None = Field(default=None, min_length=1, max_length=500)
    spd_file: str | None = Field(default=None, min_length=1, max_length=500)
    actual_duration: int | None = Field(default=None, ge=1)
    transportation_type_ids: list[UUID] | None = None


class TransportationTypeOut(BaseModel):
    id: str
    kind: str
    label: str


class ReportOut(BaseModel):
    id: str
    user_id: str
    user_name: str | None = None
    assignment_id: str
    assignment_purpose: str | None = None
    travel_type: str
    status: str
    travel_order_number: str
    destination_city: str
    departure_date: date
    return_date: date
    actual_duration: int | None = None
    travel_purpose: str
    created_at: datetime
    updated_at: datetime


class TravelReportIn(BaseModel):
    title: str = Field(min_length=10, max_length=255)
    background: str | None = None
    purpose_and_objectives: str | None = None
    scope: str | None = None
    legal_basis: str | None = None
    activities_conducted: str | None = None
    achievements: str | None = None
    conclusions: str | None = None


class TravelReportOut(TravelReportIn):
    id: str
    report_id: str
    updated_at: datetime


class ReportDetailOut(ReportOut):
    travel_order_file: str | None = None
    travel_order_file_url: str | None = None
    spd_file: str | None = None
    spd_file_url: str | None = None
    transportation_types: list[TransportationTypeOut] = []
    expense: dict[str, Any] | None = None
    travel_report: TravelReportOut | None = None
    reviews: list[ReviewOut] = []
    last_review_at: datetime | None = None
    can_resubmit: bool = False


class ReportListResponse(BaseModel):
    items: list[ReportOut]
    pagination: PaginationMeta
    totals: dict[str, int]
