"""Project Membership model."""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from artisans.database import Base, utcnow


class MemberRole(str, enum.Enum):
    CONTRACTOR = "contractor"
    PROJECT_MANAGER = "project_manager"
    INSPECTOR = "inspector"
    RELATIVE = "relative"


# Roles allowed to post timeline updates alongside the owner and admins.
ELEVATED_ROLES = {MemberRole.CONTRACTOR, MemberRole.PROJECT_MANAGER}


class ProjectMember(Base):
    __tablename__ = "project_members"

    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    role: Mapped[MemberRole] = mapped_column(Enum(MemberRole), default=MemberRole.CONTRACTOR)

    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
