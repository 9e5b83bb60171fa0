"""Project documents and images."""

import logging
from typing import List, Sequence, Tuple

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.errors import NotFound
from artisans.models.project_file import FileKind, ProjectFile
from artisans.services.projects import ensure_can_manage, ensure_can_view, get_project
from artisans.services.uploads import (
    FOLDER_DOCUMENTS,
    FOLDER_IMAGES,
    UploadResult,
    delete_stored_file,
    save_many,
)

logger = logging.getLogger(__name__)

FOLDERS = {FileKind.DOCUMENT: FOLDER_DOCUMENTS, FileKind.IMAGE: FOLDER_IMAGES}


async def upload_project_files(
    db: AsyncSession,
    ctx: RequestContext,
    project_id: int,
    kind: FileKind,
    files: Sequence[UploadFile],
) -> Tuple[List[ProjectFile], List[UploadResult]]:
    """Any team member may upload; each file succeeds or fails on its own."""
    project = await get_project(db, project_id)
    await ensure_can_view(db, ctx, project)

    results = await save_many(files, project_id, FOLDERS[kind], images_only=kind == FileKind.IMAGE)
    stored = []
    for res in results:
        if not res.ok:
            continue
        record = ProjectFile(
            project_id=project_id,
            uploaded_by=ctx.user_id,
            kind=kind,
            filename=res.filename,
            url=res.url,
            content_type=res.content_type,
            size=res.size,
        )
        db.add(record)
        stored.append(record)
    await db.flush()
    logger.info(f"{len(stored)}/{len(results)} {kind.value}(s) stored for project {project_id}")
    return stored, results


async def list_project_files(
    db: AsyncSession, ctx: RequestContext, project_id: int, kind: FileKind
) -> List[ProjectFile]:
    project = await get_project(db, project_id)
    await ensure_can_view(db, ctx, project)
    result = await db.execute(
        select(ProjectFile)
        .where(ProjectFile.project_id == project_id, ProjectFile.kind == kind)
        .order_by(ProjectFile.created_at.desc())
    )
    return list(result.scalars().all())


async def delete_project_file(
    db: AsyncSession, ctx: RequestContext, project_id: int, kind: FileKind, file_id: int
) -> None:
    """The uploader, the owner or an admin may delete a file."""
    project = await get_project(db, project_id)
    record = await db.get(ProjectFile, file_id)
    if record is None or record.project_id != project_id or record.kind != kind:
        raise NotFound(f"{kind.value.capitalize()} not found.")
    if record.uploaded_by != ctx.user_id:
        ensure_can_manage(ctx, project)

    await db.delete(record)
    await db.flush()
    delete_stored_file(record.url)
    logger.info(f"{kind.value.capitalize()} {file_id} removed from project {project_id}")
