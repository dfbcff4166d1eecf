import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from travel_desk.db.base import Base


def _money(nullable: bool = True):
    return mapped_column(Numeric(15, 2), nullable=nullable)


def _receipt():
    return mapped_column(String(500), nullable=True)


class InCityReport(Base):
    __tablename__ = "in_city_reports"

    # (cost column prefix) items that are paired with a receipt
    COST_ITEMS = ("transportation", "vehicle_rental")

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reports.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    daily_allowance: Mapped[Decimal] = _money(nullable=False)
    transportation_cost: Mapped[Decimal | None] = _money()
    transportation_receipt: Mapped[str | None] = _receipt()
    vehicle_rental_cost: Mapped[Decimal | None] = _money()
    vehicle_rental_receipt: Mapped[str | None] = _receipt()
    actual_expense: Mapped[Decimal | None] = _money()

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    report = relationship("Report", back_populates="in_city_report")


class OutCityReport(Base):
    __tablename__ = "out_city_reports"
    __table_args__ = (
        CheckConstraint(
            "(fullboard_price_id IS NOT NULL AND custom_daily_allowance IS NULL)"
            " OR (fullboard_price_id IS NULL AND custom_daily_allowance IS NOT NULL)",
            name="ck_out_city_reports_daily_allowance_source",
        ),
    )

    COST_ITEMS = ("origin_transport", "local_transport", "lodging", "destination_transport", "round_trip_ticket")

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reports.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    fullboard_price_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("fullboard_prices.id", ondelete="RESTRICT"), nullable=True
    )
    custom_daily_allowance: Mapped[Decimal | None] = _money()

    origin_transport_cost: Mapped[Decimal | None] = _money()
    origin_transport_receipt: Mapped[str | None] = _receipt()
    local_transport_cost: Mapped[Decimal | None] = _money()
    local_transport_receipt: Mapped[str | None] = _receipt()
    lodging_cost: Mapped[Decimal | None] = _money()
    lodging_receipt: Mapped[str | None] = _receipt()
    destination_transport_cost: Mapped[Decimal | None] = _money()
    destination_transport_receipt: Mapped[str | None] = _receipt()
    round_trip_ticket_cost: Mapped[Decimal | None] = _money()
    round_trip_ticket_receipt: Mapped[str | None] = _receipt()
    actual_expense: Mapped[Decimal | None] = _money()

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    report = relationship("Report", back_populates="out_city_report")
    fullboard_price = relationship("FullboardPrice")


class OutCountryReport(Base):
    __tablename__ = "out_country_reports"

    COST_ITEMS = (
        "origin_transport",
        "international_ticket",
        "local_transport",
        "lodging",
        "daily_allowance",
        "visa_fee",
        "travel_insurance",
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reports.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    origin_transport_cost: Mapped[Decimal | None] = _money()
    origin_transport_receipt: Mapped[str | None] = _receipt()
    international_ticket_cost: Mapped[Decimal | None] = _money()
    international_ticket_receipt: Mapped[str | None] = _receipt()
    local_transport_cost: Mapped[Decimal | None] = _money()
    local_transport_receipt: Mapped[str | None] = _receipt()
    lodging_cost: Mapped[Decimal | None] = _money()
    lodging_receipt: Mapped[str | None] = _receipt()
    daily_allowance_cost: Mapped[Decimal | None] = _money()
    daily_allowance_receipt: Mapped[str | None] = _receipt()
    visa_fee_cost: Mapped[Decimal | None] = _money()
    visa_fee_receipt: Mapped[str | None] = _receipt()
    travel_insurance_cost: Mapped[Decimal | None] = _money()
    travel_insurance_receipt: Mapped[str | None] = _receipt()
    actual_expense: Mapped[Decimal | None] = _money()

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    report = relationship("Report", back_populates="out_country_report")
