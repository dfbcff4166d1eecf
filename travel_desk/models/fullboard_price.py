import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, DateTime, Numeric, CheckConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from travel_desk.db.base import Base


class FullboardPrice(Base):
    """Province-keyed standard daily allowance rate."""
    __tablename__ = "fullboard_prices"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_fullboard_prices_price_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    province_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
