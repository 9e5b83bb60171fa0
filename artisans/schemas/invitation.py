"""Team invitation schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr

from artisans.models.project_member import MemberRole
from artisans.models.team_invitation import InvitationStatus
from artisans.schemas.base import CamelModel
from artisans.services.invitations import InvitationState


class InvitationCreate(CamelModel):
    invite_email: EmailStr
    role: MemberRole
    permissions: List[str] = []


class InvitationOut(CamelModel):
    id: int
    project_id: int
    invite_token: str
    invite_email: str
    role: MemberRole
    status: InvitationStatus
    permissions: List[str] = []
    invited_by: int
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IssuedInvitationOut(InvitationOut):
    invite_link: str


class InvitationView(InvitationOut):
    """What the join page needs: the invitation plus its resolved state."""
    state: InvitationState
    message: str
    project_name: Optional[str] = None
    invited_by_username: Optional[str] = None


class InvitationTokenIn(CamelModel):
    token: str


class InvitationActionIn(CamelModel):
    action: Literal["accept", "decline"]


class AcceptOut(CamelModel):
    project_id: int


class DeclineOut(CamelModel):
    project_id: int
    status: InvitationStatus
