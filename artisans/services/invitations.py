"""
Team invitation workflow.

An invitation is a single-use token granting one role on one project to
whoever redeems it while signed in with the invited email address.

    issue      → pending token, expires after INVITATION_EXPIRE_DAYS
    resolve    → invalid | expired | already_processed | valid
    accept     → pending → accepted, membership added exactly once
    decline    → pending → declined

Expiry is judged by the server clock only.
"""

import enum
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.config import settings
from artisans.context import RequestContext
from artisans.database import as_utc, utcnow
from artisans.errors import (
    AlreadyProcessed,
    EmailMismatch,
    InvalidState,
    InvitationExpired,
    NotFound,
)
from artisans.models.notification import NotificationPriority
from artisans.models.project import Project
from artisans.models.project_member import MemberRole
from artisans.models.team_invitation import InvitationStatus, TeamInvitation
from artisans.models.user import User
from artisans.services.notifications import create_notification
from artisans.services.projects import (
    add_member_if_absent,
    ensure_can_manage,
    ensure_can_view,
    get_membership,
    get_project,
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {InvitationStatus.ACCEPTED, InvitationStatus.DECLINED}


class InvitationState(str, enum.Enum):
    INVALID = "invalid"
    EXPIRED = "expired"
    ALREADY_PROCESSED = "already_processed"
    VALID = "valid"


@dataclass
class InvitationResolution:
    state: InvitationState
    message: str
    invitation: Optional[TeamInvitation] = None
    project: Optional[Project] = None


def new_invite_token() -> str:
    return secrets.token_urlsafe(32)


def is_expired(invitation: TeamInvitation, now: Optional[datetime] = None) -> bool:
    return (now or utcnow()) > as_utc(invitation.expires_at)


def classify(invitation: Optional[TeamInvitation], now: Optional[datetime] = None) -> InvitationResolution:
    """Map an invitation (or its absence) to exactly one state, in precedence order."""
    if invitation is None:
        return InvitationResolution(
            InvitationState.INVALID,
            "This invitation link is invalid or has been removed.",
        )
    if is_expired(invitation, now):
        return InvitationResolution(
            InvitationState.EXPIRED,
            "This invitation has expired. Ask the project owner to send a new one.",
            invitation,
        )
    if invitation.status in TERMINAL_STATUSES:
        if invitation.status == InvitationStatus.ACCEPTED:
            message = "This invitation has already been accepted."
        else:
            message = "This invitation has been declined."
        return InvitationResolution(InvitationState.ALREADY_PROCESSED, message, invitation)
    return InvitationResolution(
        InvitationState.VALID,
        f"You have been invited to join as {invitation.role.value.replace('_', ' ')}.",
        invitation,
    )


async def get_by_token(db: AsyncSession, token: str) -> Optional[TeamInvitation]:
    result = await db.execute(select(TeamInvitation).where(TeamInvitation.invite_token == token))
    return result.scalar_one_or_none()


# ═══════════════════════════════════════════════════════════════
#  Issue / list / delete
# ═══════════════════════════════════════════════════════════════

async def issue_invitation(
    db: AsyncSession,
    ctx: RequestContext,
    project_id: int,
    invite_email: str,
    role: MemberRole,
    permissions: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
) -> TeamInvitation:
    """Create a pending invitation. Email delivery is scheduled by the caller."""
    project = await get_project(db, project_id)
    ensure_can_manage(ctx, project)
    now = now or utcnow()
    invite_email = invite_email.strip().lower()

    # One live pending invitation per address and project.
    existing = await db.execute(
        select(TeamInvitation).where(
            TeamInvitation.project_id == project_id,
            TeamInvitation.invite_email == invite_email,
            TeamInvitation.status == InvitationStatus.PENDING,
            TeamInvitation.expires_at > now,
        )
    )
    if existing.scalars().first() is not None:
        raise InvalidState(f"{invite_email} already has a pending invitation to this project.")

    invitee = (await db.execute(select(User).where(User.email == invite_email))).scalar_one_or_none()
    if invitee and (invitee.id == project.client_id or await get_membership(db, project_id, invitee.id)):
        raise InvalidState(f"{invite_email} is already on this project.")

    invitation = TeamInvitation(
        project_id=project_id,
        invited_by=ctx.user_id,
        invite_token=new_invite_token(),
        invite_email=invite_email,
        role=role,
        status=InvitationStatus.PENDING,
        permissions_json=json.dumps(list(permissions or [])),
        expires_at=now + timedelta(days=settings.INVITATION_EXPIRE_DAYS),
    )
    db.add(invitation)
    await db.flush()

    if invitee:
        create_notification(
            db,
            user_id=invitee.id,
            title="Team Invitation",
            message=f"You have been invited to join project \"{project.name}\" as {role.value.replace('_', ' ')}",
            type="invitation",
            priority=NotificationPriority.HIGH,
            link=f"/join/{invitation.invite_token}",
        )

    logger.info(f"Invitation {invitation.id} issued for project {project_id} to {invite_email} as {role.value}")
    return invitation


async def list_project_invitations(db: AsyncSession, ctx: RequestContext, project_id: int) -> List[TeamInvitation]:
    project = await get_project(db, project_id)
    await ensure_can_view(db, ctx, project)
    result = await db.execute(
        select(TeamInvitation)
        .where(TeamInvitation.project_id == project_id)
        .order_by(TeamInvitation.created_at.desc())
    )
    return list(result.scalars().all())


async def delete_invitation(db: AsyncSession, ctx: RequestContext, project_id: int, invitation_id: int) -> None:
    """The issuer, owner or an admin may withdraw an invitation before it is answered."""
    project = await get_project(db, project_id)
    result = await db.execute(
        select(TeamInvitation).where(
            TeamInvitation.id == invitation_id,
            TeamInvitation.project_id == project_id,
        )
    )
    invitation = result.scalar_one_or_none()
    if not invitation:
        raise NotFound("Invitation not found.")

    if invitation.invited_by != ctx.user_id:
        ensure_can_manage(ctx, project)
    if invitation.status in TERMINAL_STATUSES:
        raise AlreadyProcessed("Answered invitations cannot be withdrawn.")

    await db.delete(invitation)
    await db.flush()
    logger.info(f"Invitation {invitation_id} withdrawn from project {project_id}")


async def list_pending_invitations(
    db: AsyncSession, ctx: RequestContext, now: Optional[datetime] = None
) -> List[TeamInvitation]:
    """Pending, unexpired invitations addressed to the signed-in user."""
    user = ctx.require_user()
    result = await db.execute(
        select(TeamInvitation)
        .where(
            TeamInvitation.invite_email == user.email.lower(),
            TeamInvitation.status == InvitationStatus.PENDING,
            TeamInvitation.expires_at > (now or utcnow()),
        )
        .order_by(TeamInvitation.created_at.desc())
    )
    return list(result.scalars().all())


# ═══════════════════════════════════════════════════════════════
#  Resolve / accept / decline
# ═══════════════════════════════════════════════════════════════

async def resolve_invitation(
    db: AsyncSession, token: str, now: Optional[datetime] = None
) -> InvitationResolution:
    invitation = await get_by_token(db, token)
    resolution = classify(invitation, now)
    if invitation is not None:
        resolution.project = await db.get(Project, invitation.project_id)
    return resolution


async def _load_answerable(
    db: AsyncSession, ctx: RequestContext, token: str, now: Optional[datetime]
) -> TeamInvitation:
    """Run every precondition for answering an invitation, in the resolver's order."""
    user = ctx.require_user()
    resolution = classify(await get_by_token(db, token), now)

    if resolution.state == InvitationState.INVALID:
        raise NotFound(resolution.message)
    if resolution.state == InvitationState.EXPIRED:
        raise InvitationExpired(resolution.message)
    if resolution.state == InvitationState.ALREADY_PROCESSED:
        raise AlreadyProcessed(resolution.message)

    invitation = resolution.invitation
    if user.email.strip().lower() != invitation.invite_email.strip().lower():
        raise EmailMismatch(
            f"This invitation was sent to {invitation.invite_email}, "
            f"but you are signed in as {user.email}."
        )
    return invitation


async def _transition(
    db: AsyncSession, invitation: TeamInvitation, status: InvitationStatus, now: datetime
) -> None:
    """Move pending → ``status`` with a conditional UPDATE so only one caller can win."""
    values = {"status": status, "updated_at": now}
    if status == InvitationStatus.ACCEPTED:
        values["accepted_at"] = now
    result = await db.execute(
        update(TeamInvitation)
        .where(
            TeamInvitation.id == invitation.id,
            TeamInvitation.status == InvitationStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyProcessed()
    await db.refresh(invitation)


async def accept_invitation(
    db: AsyncSession, ctx: RequestContext, token: str, now: Optional[datetime] = None
) -> int:
    """Accept a pending invitation and return the project id to redirect to."""
    now = now or utcnow()
    invitation = await _load_answerable(db, ctx, token, now)
    project = await get_project(db, invitation.project_id)

    await _transition(db, invitation, InvitationStatus.ACCEPTED, now)
    added = await add_member_if_absent(db, project, ctx.user_id, invitation.role)

    create_notification(
        db,
        user_id=invitation.invited_by,
        title="Invitation accepted",
        message=f"{ctx.user.full_name} accepted your invitation to \"{project.name}\"",
        type="project_team",
        link=f"/projects/{project.id}",
    )
    logger.info(
        f"Invitation {invitation.id} accepted by user {ctx.user_id} "
        f"(membership {'added' if added else 'already present'})"
    )
    return project.id


async def decline_invitation(
    db: AsyncSession, ctx: RequestContext, token: str, now: Optional[datetime] = None
) -> TeamInvitation:
    now = now or utcnow()
    invitation = await _load_answerable(db, ctx, token, now)
    project = await get_project(db, invitation.project_id)

    await _transition(db, invitation, InvitationStatus.DECLINED, now)

    create_notification(
        db,
        user_id=invitation.invited_by,
        title="Invitation declined",
        message=f"{ctx.user.full_name} declined your invitation to \"{project.name}\"",
        type="project_team",
        link=f"/projects/{project.id}",
    )
    logger.info(f"Invitation {invitation.id} declined by user {ctx.user_id}")
    return invitation
