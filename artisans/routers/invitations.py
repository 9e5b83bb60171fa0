"""
Invitations router — the join-link side of team invitations.

    GET   /api/invitations/pending    → invitations addressed to me
    GET   /api/invitations/{token}    → resolve a token (404 when unknown)
    POST  /api/invitations/accept     → {token} → {projectId}
    POST  /api/invitations/decline    → {token}
    PATCH /api/invitations/{token}    → {action: accept|decline}
"""

from typing import List, Union

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from artisans.context import RequestContext
from artisans.database import get_db
from artisans.errors import NotFound
from artisans.models.user import User
from artisans.routers.auth import get_context
from artisans.schemas.invitation import (
    AcceptOut,
    DeclineOut,
    InvitationActionIn,
    InvitationOut,
    InvitationTokenIn,
    InvitationView,
)
from artisans.services import invitations as invitation_service
from artisans.services.invitations import InvitationState

router = APIRouter(prefix="/api/invitations", tags=["invitations"])


@router.get("/pending", response_model=List[InvitationOut])
async def my_pending_invitations(
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    return await invitation_service.list_pending_invitations(db, ctx)


@router.get("/{token}", response_model=InvitationView)
async def view_invitation(token: str, db: AsyncSession = Depends(get_db)):
    """Public: the join page calls this before the visitor signs in."""
    resolution = await invitation_service.resolve_invitation(db, token)
    if resolution.state == InvitationState.INVALID:
        raise NotFound(resolution.message)

    invitation = resolution.invitation
    inviter = await db.get(User, invitation.invited_by)
    return InvitationView(
        **InvitationOut.model_validate(invitation).model_dump(),
        state=resolution.state,
        message=resolution.message,
        project_name=resolution.project.name if resolution.project else None,
        invited_by_username=inviter.username if inviter else None,
    )


@router.post("/accept", response_model=AcceptOut)
async def accept(
    body: InvitationTokenIn,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    project_id = await invitation_service.accept_invitation(db, ctx, body.token)
    return AcceptOut(project_id=project_id)


@router.post("/decline", response_model=DeclineOut)
async def decline(
    body: InvitationTokenIn,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    invitation = await invitation_service.decline_invitation(db, ctx, body.token)
    return DeclineOut(project_id=invitation.project_id, status=invitation.status)


@router.patch("/{token}", response_model=Union[AcceptOut, DeclineOut])
async def respond(
    token: str,
    body: InvitationActionIn,
    ctx: RequestContext = Depends(get_context),
    db: AsyncSession = Depends(get_db),
):
    if body.action == "accept":
        project_id = await invitation_service.accept_invitation(db, ctx, token)
        return AcceptOut(project_id=project_id)
    invitation = await invitation_service.decline_invitation(db, ctx, token)
    return DeclineOut(project_id=invitation.project_id, status=invitation.status)
