"""
Projects router — projects, team, timeline, invitations, documents and images.

Endpoints (all under /api/projects):
    GET    /                               → my projects
    POST   /                               → create a project (client)
    GET    /{id}                           → project + team (ETag = version)
    PATCH  /{id}                           → update (honours If-Match)
    POST   /{id}/team                      → add a member by username
    DELETE /{id}/team/{user_id}            → remove a member
    GET    /{id}/timeline                  → timeline, newest first
    POST   /{id}/timeline                  → append an entry (JSON)
    POST   /{id}/timeline/upload           → append an entry with image files
    PATCH  /{id}/timeline/{entry_id}       → edit an entry
    GET    /{id}/invitations               → invitations for the project
    POST   /{id}/invitations               → issue an invitation
    DELETE /{id}/invitations/{inv_id}      → withdraw a pending invitation
    GET|POST /{id}/documents, /{id}/images → list / upload files
    DELETE /{id}/documents/{file_id}, /{id}/images/{file_id}
"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.errors import ValidationFailed
from artisans.models.project import Project
from artisans.models.project_file import FileKind
from artisans.models.timeline_entry import TimelineStatus
from artisans.routers.auth import get_context
from artisans.schemas.invitation import InvitationCreate, InvitationOut, IssuedInvitationOut
from artisans.schemas.project import (
    FileUploadOut,
    ProjectCreate,
    ProjectFileOut,
    ProjectOut,
    ProjectUpdate,
    TeamMemberAdd,
    TeamMemberOut,
    UploadResultOut,
)
from artisans.schemas.timeline import (
    TimelineAppendOut,
    TimelineEntryCreate,
    TimelineEntryOut,
    TimelineEntryUpdate,
)
from artisans.services import invitations as invitation_service
from artisans.services import project_files as file_service
from artisans.services import projects as project_service
from artisans.services import timeline as timeline_service
from artisans.services.notifications import invitation_link, send_invitation_email

router = APIRouter(prefix="/api/projects", tags=["projects"])


async def _project_out(db: AsyncSession, project: Project) -> ProjectOut:
    members = await project_service.list_members(db, project.id)
    out = ProjectOut.model_validate(project)
    out.team_members = [
        TeamMemberOut(
            user_id=m.user_id,
            username=u.username,
            full_name=u.full_name,
            role=m.role,
            added_at=m.added_at,
        )
        for m, u in members
    ]
    return out


def _parse_if_match(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    raw = value.strip()
    if raw.startswith("W/"):
        raw = raw[2:]
    raw = raw.strip('"')
    if not raw.isdigit():
        raise ValidationFailed("If-Match must carry a project version.")
    return int(raw)


# ═══════════════════════════════════════════════════════════════
#  Projects
# ═══════════════════════════════════════════════════════════════

@router.get("", response_model=List[ProjectOut])
async def list_projects(
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    projects = await project_service.list_projects(db, ctx)
    return [await _project_out(db, p) for p in projects]


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.create_project(db, ctx, body.model_dump())
    return await _project_out(db, project)


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: int,
    response: Response,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.get_project(db, project_id)
    await project_service.ensure_can_view(db, ctx, project)
    response.headers["ETag"] = f'"{project.version}"'
    return await _project_out(db, project)


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project(
    project_id: int,
    body: ProjectUpdate,
    response: Response,
    if_match: Optional[str] = Header(None),
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.update_project(
        db, ctx, project_id, body.model_dump(exclude_unset=True), _parse_if_match(if_match)
    )
    response.headers["ETag"] = f'"{project.version}"'
    return await _project_out(db, project)


# ═══════════════════════════════════════════════════════════════
#  Team
# ═══════════════════════════════════════════════════════════════

@router.post("/{project_id}/team", response_model=ProjectOut)
async def add_team_member(
    project_id: int,
    body: TeamMemberAdd,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.add_member(db, ctx, project_id, body.username, body.role)
    return await _project_out(db, project)


@router.delete("/{project_id}/team/{user_id}", response_model=ProjectOut)
async def remove_team_member(
    project_id: int,
    user_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    project = await project_service.remove_member(db, ctx, project_id, user_id)
    return await _project_out(db, project)


# ═══════════════════════════════════════════════════════════════
#  Timeline
# ═══════════════════════════════════════════════════════════════

@router.get("/{project_id}/timeline", response_model=List[TimelineEntryOut])
async def get_timeline(
    project_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await timeline_service.list_timeline(db, ctx, project_id)


@router.post("/{project_id}/timeline", response_model=TimelineAppendOut, status_code=status.HTTP_201_CREATED)
async def append_timeline(
    project_id: int,
    body: TimelineEntryCreate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    entry = await timeline_service.append_timeline_entry(db, ctx, project_id, body.model_dump())
    project = await project_service.get_project(db, project_id)
    return TimelineAppendOut(
        entry=TimelineEntryOut.model_validate(entry),
        project_progress=project.progress,
    )


@router.post("/{project_id}/timeline/upload", response_model=TimelineAppendOut, status_code=status.HTTP_201_CREATED)
async def append_timeline_with_images(
    project_id: int,
    title: str = Form(...),
    description: Optional[str] = Form(None),
    status_: Optional[TimelineStatus] = Form(None, alias="status"),
    date: Optional[str] = Form(None),
    completion_percentage: Optional[int] = Form(None, alias="completionPercentage"),
    images: List[UploadFile] = File(default=[]),
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    """Each image is stored on its own; the response lists a result per image."""
    data = {
        "title": title,
        "description": description,
        "status": status_,
        "date": date,
        "completion_percentage": completion_percentage,
    }
    entry, results = await timeline_service.append_timeline_entry_with_uploads(
        db, ctx, project_id, data, images
    )
    project = await project_service.get_project(db, project_id)
    return TimelineAppendOut(
        entry=TimelineEntryOut.model_validate(entry),
        project_progress=project.progress,
        images=[UploadResultOut.model_validate(r) for r in results],
    )


@router.patch("/{project_id}/timeline/{entry_id}", response_model=TimelineEntryOut)
async def edit_timeline_entry(
    project_id: int,
    entry_id: int,
    body: TimelineEntryUpdate,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await timeline_service.update_timeline_entry(
        db, ctx, project_id, entry_id, body.model_dump(exclude_unset=True)
    )


# ═══════════════════════════════════════════════════════════════
#  Invitations
# ═══════════════════════════════════════════════════════════════

@router.get("/{project_id}/invitations", response_model=List[InvitationOut])
async def list_invitations(
    project_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await invitation_service.list_project_invitations(db, ctx, project_id)


@router.post("/{project_id}/invitations", response_model=IssuedInvitationOut, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    project_id: int,
    body: InvitationCreate,
    background_tasks: BackgroundTasks,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    invitation = await invitation_service.issue_invitation(
        db, ctx, project_id, body.invite_email, body.role, body.permissions
    )
    project = await project_service.get_project(db, project_id)
    background_tasks.add_task(
        send_invitation_email,
        recipient_email=invitation.invite_email,
        project_name=project.name,
        role=invitation.role.value,
        invite_token=invitation.invite_token,
        inviter_name=ctx.user.full_name,
    )
    return IssuedInvitationOut(
        **InvitationOut.model_validate(invitation).model_dump(),
        invite_link=invitation_link(invitation.invite_token),
    )


@router.delete("/{project_id}/invitations/{invitation_id}")
async def delete_invitation(
    project_id: int,
    invitation_id: int,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    await invitation_service.delete_invitation(db, ctx, project_id, invitation_id)
    return {"ok": True}


# ═══════════════════════════════════════════════════════════════
#  Documents & images
# ═══════════════════════════════════════════════════════════════

def _file_routes(kind: FileKind, segment: str):
    """Register list / upload / delete for one file kind."""

    @router.get(f"/{{project_id}}/{segment}", response_model=List[ProjectFileOut], name=f"list_{segment}")
    async def list_files(
        project_id: int,
        ctx: RequestContext = Depends(get_context),
        db: AsyncSession = Depends(get_db),
    ):
        return await file_service.list_project_files(db, ctx, project_id, kind)

    @router.post(
        f"/{{project_id}}/{segment}",
        response_model=FileUploadOut,
        status_code=status.HTTP_201_CREATED,
        name=f"upload_{segment}",
    )
    async def upload_files(
        project_id: int,
        files: List[UploadFile] = File(...),
        ctx: RequestContext = Depends(get_context),
        db: AsyncSession = Depends(get_db),
    ):
        stored, results = await file_service.upload_project_files(db, ctx, project_id, kind, files)
        return FileUploadOut(
            files=[ProjectFileOut.model_validate(f) for f in stored],
            results=[UploadResultOut.model_validate(r) for r in results],
        )

    @router.delete(f"/{{project_id}}/{segment}/{{file_id}}", name=f"delete_{segment}")
    async def delete_file(
        project_id: int,
        file_id: int,
        ctx: RequestContext = Depends(get_context),
        db: AsyncSession = Depends(get_db),
    ):
        await file_service.delete_project_file(db, ctx, project_id, kind, file_id)
        return {"ok": True}


_file_routes(FileKind.DOCUMENT, "documents")
_file_routes(FileKind.IMAGE, "images")
