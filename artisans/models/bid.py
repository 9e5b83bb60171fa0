"""Service Request Bid model."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from artisans.database import Base, utcnow


class BidStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ServiceRequestBid(Base):
    __tablename__ = "service_request_bids"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    service_request_id: Mapped[int] = mapped_column(
        ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_provider_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    bid_amount: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    timeframe: Mapped[int] = mapped_column(Integer, nullable=False)   # days
    description: Mapped[str] = mapped_column(Text, nullable=False)
    points_used: Mapped[int] = mapped_column(Integer, default=50)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Stored by value so the partial index predicate below stays readable.
    status: Mapped[BidStatus] = mapped_column(
        Enum(BidStatus, values_callable=lambda e: [m.value for m in e]),
        default=BidStatus.PENDING,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("service_request_id", "service_provider_id", name="uq_bid_per_provider"),
        Index(
            "uq_accepted_bid_per_request",
            "service_request_id",
            unique=True,
            sqlite_where=text("status = 'accepted'"),
            postgresql_where=text("status = 'accepted'"),
        ),
    )
