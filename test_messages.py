import io

import pytest
from sqlalchemy import select

from artisans.errors import NotFound, PermissionDenied, ValidationFailed
from artisans.models.notification import Notification
from artisans.models.project import Project
from artisans.models.project_member import MemberRole, ProjectMember
from artisans.models.user import UserRole
from artisans.services import messages
from conftest import add_user


@pytest.fixture
async def crew(db):
    owner, owner_ctx = await add_user(db, "carol")
    bob, bob_ctx = await add_user(db, "bob", role=UserRole.SERVICE_PROVIDER)
    _, sam_ctx = await add_user(db, "sam")
    project = Project(name="Lakeside House", client_id=owner.id)
    db.add(project)
    await db.flush()
    db.add(ProjectMember(project_id=project.id, user_id=bob.id, role=MemberRole.CONTRACTOR))
    await db.flush()
    return owner_ctx, bob_ctx, sam_ctx, project


async def test_project_message_reaches_member_and_notifies(db, crew):
    owner_ctx, bob_ctx, _, project = crew
    sent = await messages.send_message(db, owner_ctx, bob_ctx.user_id, "  Slab pour moved to Friday. ", project.id)
    assert sent.content == "Slab pour moved to Friday."
    assert sent.is_read is False

    note = (await db.execute(select(Notification).where(Notification.user_id == bob_ctx.user_id))).scalar_one()
    assert note.type == "message"
    assert note.link == f"/projects/{project.id}"


async def test_project_message_needs_both_sides_on_the_team(db, crew):
    owner_ctx, _, sam_ctx, project = crew
    with pytest.raises(ValidationFailed):
        await messages.send_message(db, owner_ctx, sam_ctx.user_id, "Hello", project.id)
    with pytest.raises(PermissionDenied):
        await messages.send_message(db, sam_ctx, owner_ctx.user_id, "Hello", project.id)


async def test_direct_message_needs_no_project(db, crew):
    _, _, sam_ctx, _ = crew
    _, pat_ctx = await add_user(db, "pat", role=UserRole.SERVICE_PROVIDER)
    sent = await messages.send_message(db, sam_ctx, pat_ctx.user_id, "Are you free next week?")
    assert sent.project_id is None


@pytest.mark.parametrize("content", ["", "   ", None])
async def test_empty_message_is_rejected(db, crew, content):
    owner_ctx, bob_ctx, _, _ = crew
    with pytest.raises(ValidationFailed):
        await messages.send_message(db, owner_ctx, bob_ctx.user_id, content)


async def test_bad_recipients(db, crew):
    owner_ctx, _, _, _ = crew
    with pytest.raises(ValidationFailed):
        await messages.send_message(db, owner_ctx, owner_ctx.user_id, "Note to self")
    with pytest.raises(NotFound):
        await messages.send_message(db, owner_ctx, 9999, "Anyone there?")


async def test_listing_and_filters(db, crew):
    owner_ctx, bob_ctx, sam_ctx, project = crew
    await messages.send_message(db, owner_ctx, bob_ctx.user_id, "First", project.id)
    await messages.send_message(db, bob_ctx, owner_ctx.user_id, "Second", project.id)
    await messages.send_message(db, sam_ctx, owner_ctx.user_id, "Unrelated")

    assert [m.content for m in await messages.list_messages(db, owner_ctx)] == ["First", "Second", "Unrelated"]
    assert [m.content for m in await messages.list_messages(db, owner_ctx, project_id=project.id)] == ["First", "Second"]
    assert [m.content for m in await messages.list_messages(db, owner_ctx, with_user_id=sam_ctx.user_id)] == ["Unrelated"]
    assert [m.content for m in await messages.list_messages(db, sam_ctx)] == ["Unrelated"]


async def test_only_receiver_marks_read(db, crew):
    owner_ctx, bob_ctx, _, project = crew
    sent = await messages.send_message(db, owner_ctx, bob_ctx.user_id, "Check the rebar", project.id)
    with pytest.raises(NotFound):
        await messages.mark_message_read(db, owner_ctx, sent.id)
    assert (await messages.mark_message_read(db, bob_ctx, sent.id)).is_read is True


# ── HTTP ──

async def test_messages_over_http(client, session_factory, make_user, make_project, auth):
    carol = await make_user("carol")
    bob = await make_user("bob", role=UserRole.SERVICE_PROVIDER)
    project = await make_project(carol)
    async with session_factory() as session:
        session.add(ProjectMember(project_id=project.id, user_id=bob.id, role=MemberRole.CONTRACTOR))
        await session.commit()

    sent = await client.post(
        "/api/messages",
        json={"receiverId": bob.id, "projectId": project.id, "content": "Site visit at 9"},
        headers=auth(carol),
    )
    assert sent.status_code == 201
    assert sent.json()["senderId"] == carol.id

    inbox = await client.get("/api/messages", params={"projectId": project.id}, headers=auth(bob))
    assert [m["content"] for m in inbox.json()] == ["Site visit at 9"]

    read = await client.post(f"/api/messages/{sent.json()['id']}/read", headers=auth(bob))
    assert read.json()["isRead"] is True

    empty = await client.post("/api/messages", json={"receiverId": bob.id, "content": ""}, headers=auth(carol))
    assert empty.status_code == 422


async def test_message_with_images(client, session_factory, make_user, make_project, auth):
    carol = await make_user("carol")
    bob = await make_user("bob", role=UserRole.SERVICE_PROVIDER)
    project = await make_project(carol)
    async with session_factory() as session:
        session.add(ProjectMember(project_id=project.id, user_id=bob.id, role=MemberRole.CONTRACTOR))
        await session.commit()

    resp = await client.post(
        "/api/messages/with-images",
        data={"receiverId": str(carol.id), "projectId": str(project.id), "content": "Crack in the lintel"},
        files=[
            ("images", ("lintel.jpg", io.BytesIO(b"\xff\xd8\xff jpeg bytes"), "image/jpeg")),
            ("images", ("notes.txt", io.BytesIO(b"text"), "text/plain")),
        ],
        headers=auth(bob),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert len(body["message"]["images"]) == 1
    assert body["message"]["images"][0].startswith(f"/uploads/{project.id}/messages/")
    assert [r["error"] is None for r in body["images"]] == [True, False]

    no_project = await client.post(
        "/api/messages/with-images",
        data={"receiverId": str(carol.id), "content": "Hi"},
        files=[("images", ("a.jpg", io.BytesIO(b"\xff\xd8"), "image/jpeg"))],
        headers=auth(bob),
    )
    assert no_project.status_code == 422
