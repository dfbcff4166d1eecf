from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


def _cost():
    return Field(default=None, ge=0, max_digits=15, decimal_places=2)


def _receipt():
    return Field(default=None, min_length=1, max_length=500)


class InCityExpenseIn(BaseModel):
    daily_allowance: Decimal = Field(ge=0, max_digits=15, decimal_places=2)
    transportation_cost: Decimal | None = _cost()
    transportation_receipt: str | None = _receipt()
    vehicle_rental_cost: Decimal | None = _cost()
    vehicle_rental_receipt: str | None = _receipt()
    actual_expense: Decimal | None = _cost()


class OutCityExpenseIn(BaseModel):
    """Daily allowance comes from a fullboard price or a custom amount, never both."""
    fullboard_price_id: UUID | None = None
    custom_daily_allowance: Decimal | None = Field(
        default=None, ge=Decimal("0.01"), max_digits=15, decimal_places=2
    )

    origin_transport_cost: Decimal | None = _cost()
    origin_transport_receipt: str | None = _receipt()
    local_transport_cost: Decimal | None = _cost()
    local_transport_receipt: str | None = _receipt()
    lodging_cost: Decimal | None = _cost()
    lodging_receipt: str | None = _receipt()
    destination_transport_cost: Decimal | None = _cost()
    destination_transport_receipt: str | None = _receipt()
    round_trip_ticket_cost: Decimal | None = _cost()
    round_trip_ticket_receipt: str | None = _receipt()
    actual_expense: Decimal | None = _cost()

    @model_validator(mode="after")
    def _one_allowance_source(self):
        has_price = self.fullboard_price_id is not None
        has_custom = self.custom_daily_allowance is not None
        if has_price and has_custom:
            raise ValueError("Provide either fullboard_price_id or custom_daily_allowance, not both")
        if not has_price and not has_custom:
            raise ValueError("Either fullboard_price_id or custom_daily_allowance is required")
        return self


class OutCountryExpenseIn(BaseModel):
    origin_transport_cost: Decimal | None = _cost()
    origin_transport_receipt: str | None = _receipt()
    international_ticket_cost: Decimal | None = _cost()
    international_ticket_receipt: str | None = _receipt()
    local_transport_cost: Decimal | None = _cost()
    local_transport_receipt: str | None = _receipt()
    lodging_cost: Decimal | None = _cost()
    lodging_receipt: str | None = _receipt()
    daily_allowance_cost: Decimal | None = _cost()
    daily_allowance_receipt: str | None = _receipt()
    visa_fee_cost: Decimal | None = _cost()
    visa_fee_receipt: str | None = _receipt()
    travel_insurance_cost: Decimal | None = _cost()
    travel_insurance_receipt: str | None = _receipt()
    actual_expense: Decimal | None = _cost()
