from datetime import timedelta

import pytest
from sqlalchemy import func, select

from artisans.database import as_utc, utcnow
from artisans.errors import (
    AlreadyProcessed,
    EmailMismatch,
    InvalidState,
    InvitationExpired,
    NotFound,
    PermissionDenied,
)
from artisans.models.notification import Notification
from artisans.models.project import Project
from artisans.models.project_member import MemberRole, ProjectMember
from artisans.models.team_invitation import InvitationStatus, TeamInvitation
from artisans.models.user import UserRole
from artisans.services import invitations
from artisans.services.invitations import InvitationState
from conftest import add_user


@pytest.fixture
async def scene(db):
    owner, owner_ctx = await add_user(db, "carol")
    invitee, invitee_ctx = await add_user(db, "ivy", role=UserRole.SERVICE_PROVIDER)
    project = Project(name="Lakeside House", client_id=owner.id)
    db.add(project)
    await db.flush()
    return owner_ctx, invitee_ctx, project


async def _member_count(db, project_id, user_id):
    result = await db.execute(
        select(func.count()).select_from(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
    )
    return result.scalar()


# ── Issue ──

async def test_issue_creates_pending_token_with_seven_day_expiry(db, scene):
    owner_ctx, _, project = scene
    now = utcnow()
    inv = await invitations.issue_invitation(
        db, owner_ctx, project.id, "  Ivy@Example.com ", MemberRole.INSPECTOR, ["view_timeline"], now=now
    )
    assert inv.status == InvitationStatus.PENDING
    assert inv.invite_email == "ivy@example.com"
    assert len(inv.invite_token) >= 40
    assert as_utc(inv.expires_at) == now + timedelta(days=7)
    assert inv.permissions == ["view_timeline"]


async def test_issue_notifies_registered_invitee(db, scene):
    owner_ctx, invitee_ctx, project = scene
    await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)
    notes = (await db.execute(select(Notification).where(Notification.user_id == invitee_ctx.user_id))).scalars().all()
    assert len(notes) == 1
    assert notes[0].type == "invitation"


async def test_tokens_are_unique(db, scene):
    owner_ctx, _, project = scene
    a = await invitations.issue_invitation(db, owner_ctx, project.id, "a@example.com", MemberRole.RELATIVE)
    b = await invitations.issue_invitation(db, owner_ctx, project.id, "b@example.com", MemberRole.RELATIVE)
    assert a.invite_token != b.invite_token


async def test_only_owner_or_admin_can_issue(db, scene):
    _, invitee_ctx, project = scene
    with pytest.raises(PermissionDenied):
        await invitations.issue_invitation(db, invitee_ctx, project.id, "x@example.com", MemberRole.RELATIVE)

    _, admin_ctx = await add_user(db, "root", role=UserRole.ADMIN)
    inv = await invitations.issue_invitation(db, admin_ctx, project.id, "x@example.com", MemberRole.RELATIVE)
    assert inv.invited_by == admin_ctx.user_id


async def test_issue_for_unknown_project(db, scene):
    owner_ctx, _, _ = scene
    with pytest.raises(NotFound):
        await invitations.issue_invitation(db, owner_ctx, 9999, "x@example.com", MemberRole.RELATIVE)


async def test_second_live_invitation_for_same_email_is_refused(db, scene):
    owner_ctx, _, project = scene
    await invitations.issue_invitation(db, owner_ctx, project.id, "x@example.com", MemberRole.RELATIVE)
    with pytest.raises(InvalidState):
        await invitations.issue_invitation(db, owner_ctx, project.id, "X@example.com", MemberRole.INSPECTOR)


# ── Resolve ──

async def test_resolve_unknown_token_is_invalid(db):
    resolution = await invitations.resolve_invitation(db, "no-such-token")
    assert resolution.state == InvitationState.INVALID
    assert resolution.invitation is None


async def test_resolve_states_follow_precedence(db, scene):
    owner_ctx, _, project = scene
    now = utcnow()
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR, now=now)

    valid = await invitations.resolve_invitation(db, inv.invite_token, now=now)
    assert valid.state == InvitationState.VALID
    assert valid.project.id == project.id

    later = now + timedelta(days=8)
    assert (await invitations.resolve_invitation(db, inv.invite_token, now=later)).state == InvitationState.EXPIRED

    inv.status = InvitationStatus.ACCEPTED
    await db.flush()
    processed = await invitations.resolve_invitation(db, inv.invite_token, now=now)
    assert processed.state == InvitationState.ALREADY_PROCESSED
    assert "accepted" in processed.message

    # Expiry wins over a terminal status.
    assert (await invitations.resolve_invitation(db, inv.invite_token, now=later)).state == InvitationState.EXPIRED


async def test_declined_message_differs_from_accepted(db, scene):
    owner_ctx, _, project = scene
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)
    inv.status = InvitationStatus.DECLINED
    await db.flush()
    resolution = await invitations.resolve_invitation(db, inv.invite_token)
    assert resolution.state == InvitationState.ALREADY_PROCESSED
    assert "declined" in resolution.message


# ── Accept / decline ──

async def test_accept_adds_membership_exactly_once(db, scene):
    owner_ctx, invitee_ctx, project = scene
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)

    project_id = await invitations.accept_invitation(db, invitee_ctx, inv.invite_token)
    assert project_id == project.id
    assert inv.status == InvitationStatus.ACCEPTED
    assert inv.accepted_at is not None

    membership = await db.get(ProjectMember, (project.id, invitee_ctx.user_id))
    assert membership.role == MemberRole.INSPECTOR

    with pytest.raises(AlreadyProcessed):
        await invitations.accept_invitation(db, invitee_ctx, inv.invite_token)
    assert await _member_count(db, project.id, invitee_ctx.user_id) == 1


async def test_accept_notifies_issuer(db, scene):
    owner_ctx, invitee_ctx, project = scene
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)
    await invitations.accept_invitation(db, invitee_ctx, inv.invite_token)
    notes = (await db.execute(select(Notification).where(Notification.user_id == owner_ctx.user_id))).scalars().all()
    assert [n.title for n in notes] == ["Invitation accepted"]


async def test_accept_compares_email_case_insensitively(db, scene):
    owner_ctx, _, project = scene
    _, mixed_ctx = await add_user(db, "mo", email="Mo.Builder@Example.com")
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "mo.builder@example.COM", MemberRole.CONTRACTOR)
    assert await invitations.accept_invitation(db, mixed_ctx, inv.invite_token) == project.id


async def test_accept_with_wrong_email_changes_nothing(db, scene):
    owner_ctx, _, project = scene
    _, other_ctx = await add_user(db, "otto")
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)

    with pytest.raises(EmailMismatch):
        await invitations.accept_invitation(db, other_ctx, inv.invite_token)
    assert inv.status == InvitationStatus.PENDING
    assert await _member_count(db, project.id, other_ctx.user_id) == 0


async def test_admin_still_needs_matching_email(db, scene):
    owner_ctx, _, project = scene
    _, admin_ctx = await add_user(db, "root", role=UserRole.ADMIN)
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)
    with pytest.raises(EmailMismatch):
        await invitations.accept_invitation(db, admin_ctx, inv.invite_token)


async def test_accept_expired_invitation(db, scene):
    owner_ctx, invitee_ctx, project = scene
    issued = utcnow() - timedelta(days=8)
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR, now=issued)

    with pytest.raises(InvitationExpired):
        await invitations.accept_invitation(db, invitee_ctx, inv.invite_token)
    assert inv.status == InvitationStatus.PENDING
    assert await _member_count(db, project.id, invitee_ctx.user_id) == 0


async def test_accept_unknown_token(db, scene):
    _, invitee_ctx, _ = scene
    with pytest.raises(NotFound):
        await invitations.accept_invitation(db, invitee_ctx, "missing")


async def test_accept_when_already_on_team_keeps_single_membership(db, scene):
    owner_ctx, invitee_ctx, project = scene
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)
    db.add(ProjectMember(project_id=project.id, user_id=invitee_ctx.user_id, role=MemberRole.CONTRACTOR))
    await db.flush()

    await invitations.accept_invitation(db, invitee_ctx, inv.invite_token)
    assert await _member_count(db, project.id, invitee_ctx.user_id) == 1
    membership = await db.get(ProjectMember, (project.id, invitee_ctx.user_id))
    assert membership.role == MemberRole.CONTRACTOR


async def test_declined_invitation_cannot_be_accepted(db, scene):
    owner_ctx, invitee_ctx, project = scene
    inv = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)

    declined = await invitations.decline_invitation(db, invitee_ctx, inv.invite_token)
    assert declined.status == InvitationStatus.DECLINED
    with pytest.raises(AlreadyProcessed):
        await invitations.accept_invitation(db, invitee_ctx, inv.invite_token)
    assert await _member_count(db, project.id, invitee_ctx.user_id) == 0


# ── Listing / withdrawing ──

async def test_pending_invitations_for_signed_in_user(db, scene):
    owner_ctx, invitee_ctx, project = scene
    live = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)
    other = Project(name="Garage", client_id=owner_ctx.user_id)
    db.add(other)
    await db.flush()
    await invitations.issue_invitation(
        db, owner_ctx, other.id, "ivy@example.com", MemberRole.RELATIVE, now=utcnow() - timedelta(days=30)
    )

    pending = await invitations.list_pending_invitations(db, invitee_ctx)
    assert [i.id for i in pending] == [live.id]


async def test_withdraw_pending_but_not_answered(db, scene):
    owner_ctx, invitee_ctx, project = scene
    pending = await invitations.issue_invitation(db, owner_ctx, project.id, "x@example.com", MemberRole.RELATIVE)
    await invitations.delete_invitation(db, owner_ctx, project.id, pending.id)
    assert await db.get(TeamInvitation, pending.id) is None

    answered = await invitations.issue_invitation(db, owner_ctx, project.id, "ivy@example.com", MemberRole.INSPECTOR)
    await invitations.accept_invitation(db, invitee_ctx, answered.invite_token)
    with pytest.raises(AlreadyProcessed):
        await invitations.delete_invitation(db, owner_ctx, project.id, answered.id)


# ── HTTP ──

async def test_invitation_round_trip_over_http(client, make_user, make_project, auth):
    owner = await make_user("carol")
    invitee = await make_user("ivy", role=UserRole.SERVICE_PROVIDER)
    project = await make_project(owner)

    resp = await client.post(
        f"/api/projects/{project.id}/invitations",
        json={"inviteEmail": "ivy@example.com", "role": "inspector"},
        headers=auth(owner),
    )
    assert resp.status_code == 201
    body = resp.json()
    token = body["inviteToken"]
    assert body["inviteLink"].endswith(f"/join/{token}")
    assert body["status"] == "pending"

    view = await client.get(f"/api/invitations/{token}")
    assert view.status_code == 200
    assert view.json()["state"] == "valid"
    assert view.json()["projectName"] == "Lakeside House"
    assert view.json()["invitedByUsername"] == "carol"

    accepted = await client.post("/api/invitations/accept", json={"token": token}, headers=auth(invitee))
    assert accepted.status_code == 200
    assert accepted.json() == {"projectId": project.id}

    again = await client.post("/api/invitations/accept", json={"token": token}, headers=auth(invitee))
    assert again.status_code == 409
    assert again.json()["code"] == "already_processed"

    team = await client.get(f"/api/projects/{project.id}", headers=auth(invitee))
    assert team.status_code == 200
    members = team.json()["teamMembers"]
    assert [(m["userId"], m["role"]) for m in members] == [(invitee.id, "inspector")]

    processed = await client.get(f"/api/invitations/{token}")
    assert processed.json()["state"] == "already_processed"


async def test_http_error_codes(client, session_factory, make_user, make_project, auth):
    owner = await make_user("carol")
    invitee = await make_user("ivy")
    stranger = await make_user("sam")
    project = await make_project(owner)

    async with session_factory() as session:
        session.add_all([
            TeamInvitation(
                project_id=project.id, invited_by=owner.id, invite_token="stale-token",
                invite_email="ivy@example.com", role=MemberRole.RELATIVE,
                expires_at=utcnow() - timedelta(days=1),
            ),
            TeamInvitation(
                project_id=project.id, invited_by=owner.id, invite_token="live-token",
                invite_email="ivy@example.com", role=MemberRole.RELATIVE,
                expires_at=utcnow() + timedelta(days=1),
            ),
        ])
        await session.commit()

    assert (await client.get("/api/invitations/nope")).status_code == 404

    stale = await client.get("/api/invitations/stale-token")
    assert stale.status_code == 200
    assert stale.json()["state"] == "expired"

    expired = await client.post("/api/invitations/accept", json={"token": "stale-token"}, headers=auth(invitee))
    assert expired.status_code == 410
    assert expired.json()["code"] == "expired"

    anonymous = await client.post("/api/invitations/accept", json={"token": "live-token"})
    assert anonymous.status_code == 401

    mismatch = await client.post("/api/invitations/accept", json={"token": "live-token"}, headers=auth(stranger))
    assert mismatch.status_code == 403
    assert mismatch.json()["code"] == "email_mismatch"

    declined = await client.patch("/api/invitations/live-token", json={"action": "decline"}, headers=auth(invitee))
    assert declined.status_code == 200
    assert declined.json() == {"projectId": project.id, "status": "declined"}


async def test_issue_rejects_bad_email_and_role(client, make_user, make_project, auth):
    owner = await make_user("carol")
    project = await make_project(owner)
    bad_email = await client.post(
        f"/api/projects/{project.id}/invitations",
        json={"inviteEmail": "not-an-email", "role": "inspector"},
        headers=auth(owner),
    )
    assert bad_email.status_code == 422
    bad_role = await client.post(
        f"/api/projects/{project.id}/invitations",
        json={"inviteEmail": "ivy@example.com", "role": "landlord"},
        headers=auth(owner),
    )
    assert bad_role.status_code == 422
