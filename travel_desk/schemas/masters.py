from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field


class WorkUnitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50, pattern=r"^\d+$")
    description: str | None = Field(default=None, max_length=255)
    head_id: UUID | None = None


class WorkUnitUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=50, pattern=r"^\d+$")
    description: str | None = Field(default=None, max_length=255)


class WorkUnitOut(BaseModel):
    id: str
    name: str
    code: str
    description: str | None
    head_id: str | None
    head_name: str | None = None
    member_count: int = 0
    created_at: datetime


class FullboardPriceCreate(BaseModel):
    province_name: str = Field(min_length=1, max_length=255, pattern=r"^[a-zA-Z\s]+$")
    price: Decimal = Field(ge=0, max_digits=15, decimal_places=2)


class FullboardPriceOut(BaseModel):
    id: str
    province_name: str
    price: Decimal


class TransportationTypeCreate(BaseModel):
    kind: str = Field(pattern=r"^(air|sea|land)$")
    label: str = Field(min_length=1, max_length=100)
