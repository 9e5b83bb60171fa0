"""Project access rules, CRUD and direct team management."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.errors import InvalidState, NotFound, PermissionDenied, PreconditionFailed, ValidationFailed
from artisans.models.project import Project, ProjectStatus
from artisans.models.project_member import ELEVATED_ROLES, MemberRole, ProjectMember
from artisans.models.user import User, UserRole
from artisans.services.notifications import create_notification

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "description", "status", "location", "budget", "progress"}


async def get_project(db: AsyncSession, project_id: int) -> Project:
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()
    if not project:
        raise NotFound("Project not found.")
    return project


async def get_membership(db: AsyncSession, project_id: int, user_id: int) -> Optional[ProjectMember]:
    result = await db.execute(
        select(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


def is_owner_or_admin(ctx: RequestContext, project: Project) -> bool:
    return ctx.is_admin or (ctx.user is not None and ctx.user.id == project.client_id)


async def ensure_can_view(db: AsyncSession, ctx: RequestContext, project: Project) -> None:
    """Owner, admins and team members may see a project."""
    ctx.require_user()
    if is_owner_or_admin(ctx, project):
        return
    if await get_membership(db, project.id, ctx.user_id) is None:
        raise PermissionDenied("You are not a member of this project.")


def ensure_can_manage(ctx: RequestContext, project: Project) -> None:
    """Owner or admin only: team changes, invitations, project edits."""
    ctx.require_user()
    if not is_owner_or_admin(ctx, project):
        raise PermissionDenied("Only the project owner or an admin can do this.")


async def ensure_can_post_updates(db: AsyncSession, ctx: RequestContext, project: Project) -> None:
    """Owner, admins, and contractor / project-manager members may post timeline updates."""
    ctx.require_user()
    if is_owner_or_admin(ctx, project):
        return
    membership = await get_membership(db, project.id, ctx.user_id)
    if membership is None or membership.role not in ELEVATED_ROLES:
        raise PermissionDenied("Only the owner, an admin, a contractor or a project manager can update the timeline.")


# ═══════════════════════════════════════════════════════════════
#  Projects
# ═══════════════════════════════════════════════════════════════

async def list_projects(db: AsyncSession, ctx: RequestContext) -> List[Project]:
    """Admins see everything; everyone else sees owned projects plus memberships."""
    user = ctx.require_user()
    query = select(Project).order_by(Project.created_at.desc())
    if not ctx.is_admin:
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user.id)
        query = query.where(or_(Project.client_id == user.id, Project.id.in_(member_of)))
    result = await db.execute(query)
    return list(result.scalars().all())


async def create_project(db: AsyncSession, ctx: RequestContext, data: dict) -> Project:
    user = ctx.require_role(UserRole.CLIENT)
    if not (data.get("name") or "").strip():
        raise ValidationFailed("Project name is required.")

    project = Project(
        name=data["name"].strip(),
        description=data.get("description"),
        location=data.get("location"),
        budget=data.get("budget"),
        client_id=user.id,
    )
    db.add(project)
    await db.flush()
    logger.info(f"Project {project.id} created by user {user.id}")
    return project


async def update_project(
    db: AsyncSession,
    ctx: RequestContext,
    project_id: int,
    changes: dict,
    expected_version: Optional[int] = None,
) -> Project:
    """Apply a partial update; ``expected_version`` comes from an If-Match header."""
    project = await get_project(db, project_id)
    ensure_can_manage(ctx, project)
    if expected_version is not None and expected_version != project.version:
        raise PreconditionFailed(
            f"Project was modified (version {project.version}, expected {expected_version})."
        )

    for field, value in changes.items():
        if field not in UPDATABLE_FIELDS:
            continue
        if field == "progress" and value is not None and not 0 <= value <= 100:
            raise ValidationFailed("Progress must be between 0 and 100.")
        if field == "status" and value is not None:
            value = ProjectStatus(value)
        setattr(project, field, value)

    await db.flush()
    return project


# ═══════════════════════════════════════════════════════════════
#  Team
# ═══════════════════════════════════════════════════════════════

async def list_members(db: AsyncSession, project_id: int) -> List[Tuple[ProjectMember, User]]:
    result = await db.execute(
        select(ProjectMember, User)
        .join(User, ProjectMember.user_id == User.id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.added_at)
    )
    return [tuple(row) for row in result.all()]


async def add_member_if_absent(
    db: AsyncSession, project: Project, user_id: int, role: MemberRole
) -> bool:
    """Add ``user_id`` to the team unless they own the project or already belong to it."""
    if user_id == project.client_id:
        return False
    if await get_membership(db, project.id, user_id) is not None:
        return False
    db.add(ProjectMember(project_id=project.id, user_id=user_id, role=role))
    await db.flush()
    return True


async def add_member(
    db: AsyncSession, ctx: RequestContext, project_id: int, username: str, role: MemberRole
) -> Project:
    project = await get_project(db, project_id)
    ensure_can_manage(ctx, project)

    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if not user:
        raise NotFound(f"User '{username}' not found.")

    if not await add_member_if_absent(db, project, user.id, role):
        raise InvalidState(f"{username} is already on this project.")

    create_notification(
        db,
        user_id=user.id,
        title="Added to project",
        message=f"You were added to project \"{project.name}\" as {role.value.replace('_', ' ')}",
        type="project_team",
        link=f"/projects/{project.id}",
    )
    logger.info(f"User {user.id} added to project {project.id} as {role.value}")
    return project


async def remove_member(db: AsyncSession, ctx: RequestContext, project_id: int, user_id: int) -> Project:
    project = await get_project(db, project_id)
    ensure_can_manage(ctx, project)

    membership = await get_membership(db, project_id, user_id)
    if membership is None:
        raise NotFound("Team member not found.")
    await db.delete(membership)
    await db.flush()
    logger.info(f"User {user_id} removed from project {project_id}")
    return project
