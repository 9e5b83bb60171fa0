"""Project timeline schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from artisans.models.timeline_entry import TimelineStatus
from artisans.schemas.base import CamelModel
from artisans.schemas.project import UploadResultOut


class TimelineEntryCreate(CamelModel):
    title: str
    description: Optional[str] = None
    status: Optional[TimelineStatus] = None
    # Free-form on purpose: unparseable dates fall back to "now" in the service.
    date: Optional[str] = None
    completion_percentage: Optional[int] = Field(None, ge=0, le=100)
    construction_phase: Optional[str] = None
    weather: Optional[str] = None
    costs: Optional[int] = Field(None, ge=0)
    next_steps: Optional[str] = None
    delay_reason: Optional[str] = None
    images: List[str] = []
    materials_used: List[dict] = []
    workers_involved: List[dict] = []


class TimelineEntryUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TimelineStatus] = None
    date: Optional[str] = None
    completion_percentage: Optional[int] = Field(None, ge=0, le=100)
    construction_phase: Optional[str] = None
    weather: Optional[str] = None
    costs: Optional[int] = Field(None, ge=0)
    next_steps: Optional[str] = None
    delay_reason: Optional[str] = None
    images: Optional[List[str]] = None
    materials_used: Optional[List[dict]] = None
    workers_involved: Optional[List[dict]] = None


class TimelineEntryOut(CamelModel):
    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    status: TimelineStatus
    date: datetime
    completion_percentage: Optional[int] = None
    construction_phase: Optional[str] = None
    weather: Optional[str] = None
    costs: Optional[int] = None
    next_steps: Optional[str] = None
    delay_reason: Optional[str] = None
    images: List[str] = []
    materials_used: List[dict] = []
    workers_involved: List[dict] = []
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


class TimelineAppendOut(CamelModel):
    entry: TimelineEntryOut
    project_progress: int
    images: List[UploadResultOut] = []
