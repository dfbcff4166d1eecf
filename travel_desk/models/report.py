import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from travel_desk.db.base import Base
from travel_desk.models.enums import ReportStatus, TravelType, check_in


report_transportation_types = Table(
    "report_transportation_types",
    Base.metadata,
    Column("report_id", Uuid, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False),
    Column(
        "transportation_type_id", Uuid, ForeignKey("transportation_types.id", ondelete="CASCADE"), nullable=False
    ),
    UniqueConstraint("report_id", "transportation_type_id", name="uq_report_transportation_type"),
)


class TransportationType(Base):
    __tablename__ = "transportation_types"
    __table_args__ = (
        CheckConstraint("kind IN ('air','sea','land')", name="ck_transportation_types_kind"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    kind: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        UniqueConstraint("assignment_id", "user_id", name="uq_report_assignment_user"),
        CheckConstraint(check_in("status", ReportStatus), name="ck_reports_status"),
        CheckConstraint(check_in("travel_type", TravelType), name="ck_reports_travel_type"),
        CheckConstraint("actual_duration IS NULL OR actual_duration >= 1", name="ck_reports_actual_duration"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    assignment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )

    travel_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Written only by the status resolver and the submit transition
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ReportStatus.DRAFT.value, index=True)

    travel_order_number: Mapped[str] = mapped_column(String(100), nullable=False)
    destination_city: Mapped[str] = mapped_column(String(255), nullable=False)
    departure_date: Mapped[date] = mapped_column(Date, nullable=False)
    return_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    travel_purpose: Mapped[str] = mapped_column(Text, nullable=False)

    travel_order_file: Mapped[str | None] = mapped_column(String(500), nullable=True)
    spd_file: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    user = relationship("User")
    assignment = relationship("Assignment", back_populates="reports")
    reviews = relationship(
        "ReportReview",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ReportReview.created_at",
    )
    transportation_types = relationship("TransportationType", secondary=report_transportation_types)

    in_city_report = relationship(
        "InCityReport", back_populates="report", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    out_city_report = relationship(
        "OutCityReport", back_populates="report", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    out_country_report = relationship(
        "OutCountryReport", back_populates="report", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    travel_report = relationship(
        "TravelReport", back_populates="report", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

    DETAIL_ATTRS = {
        TravelType.IN_CITY.value: "in_city_report",
        TravelType.OUT_CITY.value: "out_city_report",
        TravelType.OUT_COUNTRY.value: "out_country_report",
    }

    @property
    def expense_detail(self):
        """
        The expense sub-record matching travel_type, or None if not filled in yet.

        Raises ValueError when a sub-record of another travel type is present.
        """
        present = {
            travel_type: getattr(self, attr)
            for travel_type, attr in self.DETAIL_ATTRS.items()
            if getattr(self, attr) is not None
        }
        stray = set(present) - {self.travel_type}
        if stray:
            raise ValueError(
                f"Report {self.id} ({self.travel_type}) has expense records for {sorted(stray)}"
            )
        return present.get(self.travel_type)

    @property
    def is_editable(self) -> bool:
        return self.status in (ReportStatus.DRAFT.value, ReportStatus.REJECTED.value)
