"""Project Timeline Entry model — progress log attached to a project."""

import enum
import json
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from artisans.database import Base, utcnow


class TimelineStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"
    ON_HOLD = "on_hold"


class ProjectTimelineEntry(Base):
    __tablename__ = "project_timeline_entries"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))

    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[TimelineStatus] = mapped_column(Enum(TimelineStatus), default=TimelineStatus.IN_PROGRESS)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    completion_percentage: Mapped[Optional[int]] = mapped_column(Integer)

    # ── Construction metadata ──
    construction_phase: Mapped[Optional[str]] = mapped_column(String(100))
    weather: Mapped[Optional[str]] = mapped_column(String(200))
    costs: Mapped[Optional[int]] = mapped_column(Integer)  # cents
    next_steps: Mapped[Optional[str]] = mapped_column(Text)
    delay_reason: Mapped[Optional[str]] = mapped_column(Text)

    # ── JSON lists (stored as Text for SQLite compat) ──
    images_json: Mapped[Optional[str]] = mapped_column(Text, default="[]")
    materials_used_json: Mapped[Optional[str]] = mapped_column(Text, default="[]")
    workers_involved_json: Mapped[Optional[str]] = mapped_column(Text, default="[]")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # ── JSON helpers ──
    @staticmethod
    def _load(raw: Optional[str]) -> list:
        try:
            return json.loads(raw or "[]")
        except (json.JSONDecodeError, TypeError):
            return []

    @property
    def images(self) -> List[str]:
        return self._load(self.images_json)

    @property
    def materials_used(self) -> List[dict]:
        return self._load(self.materials_used_json)

    @property
    def workers_involved(self) -> List[dict]:
        return self._load(self.workers_involved_json)
