"""
Timeline recorder: progress entries on a project.

An entry that carries a completion percentage sets the project's
``progress`` to that value, whatever the entry's date. Project writes go
through the version stamp; a concurrent writer surfaces as ``Conflict``
instead of silently winning.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from artisans.context import RequestContext
from artisans.database import as_utc, utcnow
from artisans.errors import Conflict, NotFound, ValidationFailed
from artisans.models.project import Project
from artisans.models.timeline_entry import ProjectTimelineEntry, TimelineStatus
from artisans.services.projects import ensure_can_post_updates, ensure_can_view, get_project
from artisans.services.uploads import FOLDER_TIMELINE, UploadResult, save_many

logger = logging.getLogger(__name__)

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

EDITABLE_FIELDS = {
    "title", "description", "status", "date", "completion_percentage",
    "construction_phase", "weather", "costs", "next_steps", "delay_reason",
    "materials_used", "workers_involved", "images",
}


def parse_entry_date(value, now: Optional[datetime] = None) -> datetime:
    """
    Accept ``YYYY-MM-DD`` (midnight UTC) or any ISO-8601 datetime.

    Missing or unparseable input falls back to ``now``; the fallback is logged.
    """
    now = now or utcnow()
    if value is None or value == "":
        return now
    if isinstance(value, datetime):
        return as_utc(value)

    raw = str(value).strip()
    try:
        if DATE_ONLY.match(raw):
            return datetime.strptime(raw, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        logger.warning(f"Unparseable timeline date {value!r}; using current time")
        return now
    return as_utc(parsed).astimezone(timezone.utc)


def _validate_percentage(value) -> Optional[int]:
    if value is None:
        return None
    try:
        pct = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("Completion percentage must be a whole number.")
    if not 0 <= pct <= 100:
        raise ValidationFailed("Completion percentage must be between 0 and 100.")
    return pct


def _validate_status(value) -> TimelineStatus:
    if value is None or value == "":
        return TimelineStatus.IN_PROGRESS
    try:
        return TimelineStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in TimelineStatus)
        raise ValidationFailed(f"Invalid timeline status '{value}'. Use one of: {allowed}.")


async def _set_progress(db: AsyncSession, project: Project, pct: int) -> bool:
    """Write an entry's percentage onto the project. Returns True when it changed."""
    if pct == project.progress:
        return False

    project.progress = pct
    try:
        await db.flush()
    except StaleDataError:
        raise Conflict("The project was updated concurrently. Reload and try again.")
    logger.info(f"Project {project.id} progress set to {pct}%")
    return True


async def append_timeline_entry(
    db: AsyncSession,
    ctx: RequestContext,
    project_id: int,
    data: dict,
    now: Optional[datetime] = None,
) -> ProjectTimelineEntry:
    project = await get_project(db, project_id)
    await ensure_can_post_updates(db, ctx, project)

    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationFailed("Title is required.")
    pct = _validate_percentage(data.get("completion_percentage"))

    entry = ProjectTimelineEntry(
        project_id=project.id,
        created_by=ctx.user_id,
        title=title,
        description=data.get("description"),
        status=_validate_status(data.get("status")),
        date=parse_entry_date(data.get("date"), now),
        completion_percentage=pct,
        construction_phase=data.get("construction_phase"),
        weather=data.get("weather"),
        costs=data.get("costs"),
        next_steps=data.get("next_steps"),
        delay_reason=data.get("delay_reason"),
        images_json=json.dumps(list(data.get("images") or [])),
        materials_used_json=json.dumps(list(data.get("materials_used") or [])),
        workers_involved_json=json.dumps(list(data.get("workers_involved") or [])),
    )
    db.add(entry)
    await db.flush()

    if pct is not None:
        await _set_progress(db, project, pct)

    logger.info(f"Timeline entry {entry.id} added to project {project.id}")
    return entry


async def append_timeline_entry_with_uploads(
    db: AsyncSession,
    ctx: RequestContext,
    project_id: int,
    data: dict,
    files: Sequence[UploadFile],
    now: Optional[datetime] = None,
) -> Tuple[ProjectTimelineEntry, List[UploadResult]]:
    """Upload each image first, then record the entry with whichever images stored."""
    project = await get_project(db, project_id)
    await ensure_can_post_updates(db, ctx, project)

    results = await save_many(files, project.id, FOLDER_TIMELINE, images_only=True)
    data = dict(data)
    data["images"] = list(data.get("images") or []) + [r.url for r in results if r.ok]

    entry = await append_timeline_entry(db, ctx, project_id, data, now)
    failed = [r.filename for r in results if not r.ok]
    if failed:
        logger.warning(f"Timeline entry {entry.id} created without {len(failed)} image(s): {failed}")
    return entry, results


async def list_timeline(db: AsyncSession, ctx: RequestContext, project_id: int) -> List[ProjectTimelineEntry]:
    """Entries newest first."""
    project = await get_project(db, project_id)
    await ensure_can_view(db, ctx, project)
    result = await db.execute(
        select(ProjectTimelineEntry)
        .where(ProjectTimelineEntry.project_id == project_id)
        .order_by(ProjectTimelineEntry.date.desc(), ProjectTimelineEntry.id.desc())
    )
    return list(result.scalars().all())


async def update_timeline_entry(
    db: AsyncSession, ctx: RequestContext, project_id: int, entry_id: int, changes: dict
) -> ProjectTimelineEntry:
    project = await get_project(db, project_id)
    await ensure_can_post_updates(db, ctx, project)

    entry = await db.get(ProjectTimelineEntry, entry_id)
    if entry is None or entry.project_id != project_id:
        raise NotFound("Timeline entry not found.")

    for field, value in changes.items():
        if field not in EDITABLE_FIELDS:
            continue
        if field == "title":
            value = (value or "").strip()
            if not value:
                raise ValidationFailed("Title is required.")
        elif field == "status":
            value = _validate_status(value)
        elif field == "date":
            value = parse_entry_date(value)
        elif field == "completion_percentage":
            value = _validate_percentage(value)
        elif field in ("images", "materials_used", "workers_involved"):
            field, value = f"{field}_json", json.dumps(list(value or []))
        setattr(entry, field, value)

    await db.flush()
    if changes.get("completion_percentage") is not None:
        await _set_progress(db, project, entry.completion_percentage)
    return entry
