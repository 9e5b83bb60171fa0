"""Service Request model — a client's request for an artisan or contractor."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from artisans.database import Base, utcnow


class ServiceRequestStatus(str, enum.Enum):
    PENDING_ADMIN = "pending_admin"
    APPROVED = "approved"
    PUBLISHED = "published"
    BIDDING = "bidding"
    AWARDED = "awarded"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses in which providers may bid and an admin may award.
OPEN_FOR_BIDDING = {ServiceRequestStatus.PUBLISHED, ServiceRequestStatus.BIDDING}


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    request_type: Mapped[str] = mapped_column(String(50), nullable=False)  # artisan, contractor, real_estate
    service_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    budget: Mapped[Optional[int]] = mapped_column(Integer)  # cents
    location: Mapped[str] = mapped_column(String(300), nullable=False)
    timeline: Mapped[Optional[str]] = mapped_column(String(200))

    status: Mapped[ServiceRequestStatus] = mapped_column(
        Enum(ServiceRequestStatus), default=ServiceRequestStatus.PENDING_ADMIN
    )
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)
    assigned_service_provider_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __mapper_args__ = {"version_id_col": version}
