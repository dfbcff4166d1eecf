from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class AssignmentCreate(BaseModel):
    purpose: str = Field(min_length=10)
    destination: str = Field(min_length=1, max_length=255)
    start_date: date
    end_date: date
    user_ids: list[UUID] = Field(min_length=1, description="Participant user IDs")

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class AssignmentUpdate(AssignmentCreate):
    pass


class AssignmentBulkDelete(BaseModel):
    ids: list[UUID] = Field(min_length=1, max_length=200)


class ParticipantOut(BaseModel):
    id: str
    full_name: str
    email: str | None = None


class AssignmentOut(BaseModel):
    id: str
    purpose: str
    destination: str
    start_date: date
    end_date: date
    creator_id: str | None = None
    participants: list[ParticipantOut] = []
    report_count: int = 0
    documentation_count: int = 0
    created_at: datetime
    updated_at: datetime


class DocumentationOut(BaseModel):
    id: str
    assignment_id: str
    uploaded_by_id: str | None = None
    photo: str
    photo_url: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime
    updated_at: datetime
