import io
from datetime import datetime, timezone

import pytest

from artisans.database import as_utc
from artisans.errors import PermissionDenied, ValidationFailed
from artisans.models.project import Project
from artisans.models.project_member import MemberRole, ProjectMember
from artisans.models.timeline_entry import TimelineStatus
from artisans.models.user import UserRole
from artisans.services import timeline
from artisans.services.timeline import parse_entry_date
from conftest import add_user


@pytest.fixture
async def scene(db):
    owner, owner_ctx = await add_user(db, "carol")
    project = Project(name="Lakeside House", client_id=owner.id)
    db.add(project)
    await db.flush()
    return owner_ctx, project


# ── Date parsing ──

def test_date_only_is_midnight_utc():
    assert parse_entry_date("2024-03-15") == datetime(2024, 3, 15, tzinfo=timezone.utc)


def test_iso_datetime_with_offset_is_normalised_to_utc():
    assert parse_entry_date("2024-03-15T10:30:00+02:00") == datetime(2024, 3, 15, 8, 30, tzinfo=timezone.utc)
    assert parse_entry_date("2024-03-15T10:30:00Z") == datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


def test_missing_or_garbage_date_falls_back_to_now(caplog):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert parse_entry_date(None, now) == now
    assert parse_entry_date("", now) == now
    assert parse_entry_date("next tuesday", now) == now
    assert "Unparseable timeline date" in caplog.text


# ── Append ──

async def test_append_sets_project_progress(db, scene):
    owner_ctx, project = scene
    entry = await timeline.append_timeline_entry(
        db, owner_ctx, project.id,
        {"title": "Foundation poured", "date": "2024-03-01", "completion_percentage": 25, "status": "completed"},
    )
    assert entry.status == TimelineStatus.COMPLETED
    assert as_utc(entry.date) == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert project.progress == 25


async def test_entry_without_percentage_leaves_progress_alone(db, scene):
    owner_ctx, project = scene
    await timeline.append_timeline_entry(db, owner_ctx, project.id, {"title": "Walls", "completion_percentage": 40})
    await timeline.append_timeline_entry(db, owner_ctx, project.id, {"title": "Rain delay", "status": "delayed"})
    assert project.progress == 40


async def test_new_entry_percentage_wins_even_when_back_dated(db, scene):
    owner_ctx, project = scene
    await timeline.append_timeline_entry(
        db, owner_ctx, project.id, {"title": "Roofing", "date": "2024-05-01", "completion_percentage": 50}
    )
    await timeline.append_timeline_entry(
        db, owner_ctx, project.id, {"title": "Slab re-poured", "date": "2024-04-01", "completion_percentage": 75}
    )
    assert project.progress == 75


async def test_date_only_entry_after_undated_entry_same_day(db, scene):
    owner_ctx, project = scene
    afternoon = datetime(2024, 5, 1, 14, 0, tzinfo=timezone.utc)
    await timeline.append_timeline_entry(
        db, owner_ctx, project.id, {"title": "Walls", "completion_percentage": 40}, now=afternoon
    )
    await timeline.append_timeline_entry(
        db, owner_ctx, project.id, {"title": "Roof", "date": "2024-05-01", "completion_percentage": 75}, now=afternoon
    )
    assert project.progress == 75


async def test_progress_update_bumps_project_version(db, scene):
    owner_ctx, project = scene
    before = project.version
    await timeline.append_timeline_entry(db, owner_ctx, project.id, {"title": "Walls", "completion_percentage": 40})
    assert project.version == before + 1


@pytest.mark.parametrize("title", ["", "   ", None])
async def test_blank_title_is_rejected(db, scene, title):
    owner_ctx, project = scene
    with pytest.raises(ValidationFailed):
        await timeline.append_timeline_entry(db, owner_ctx, project.id, {"title": title})


@pytest.mark.parametrize("pct", [-1, 101, "lots"])
async def test_percentage_out_of_range_is_rejected(db, scene, pct):
    owner_ctx, project = scene
    with pytest.raises(ValidationFailed):
        await timeline.append_timeline_entry(db, owner_ctx, project.id, {"title": "x", "completion_percentage": pct})
    assert project.progress == 0


async def test_who_may_post_updates(db, scene):
    owner_ctx, project = scene
    contractor, contractor_ctx = await add_user(db, "bob", role=UserRole.SERVICE_PROVIDER)
    relative, relative_ctx = await add_user(db, "gran")
    _, stranger_ctx = await add_user(db, "sam")
    _, admin_ctx = await add_user(db, "root", role=UserRole.ADMIN)
    db.add_all([
        ProjectMember(project_id=project.id, user_id=contractor.id, role=MemberRole.CONTRACTOR),
        ProjectMember(project_id=project.id, user_id=relative.id, role=MemberRole.RELATIVE),
    ])
    await db.flush()

    for ctx in (contractor_ctx, admin_ctx):
        entry = await timeline.append_timeline_entry(db, ctx, project.id, {"title": "Update"})
        assert entry.created_by == ctx.user_id

    for ctx in (relative_ctx, stranger_ctx):
        with pytest.raises(PermissionDenied):
            await timeline.append_timeline_entry(db, ctx, project.id, {"title": "Update"})

    # Relatives can still read the timeline.
    assert len(await timeline.list_timeline(db, relative_ctx, project.id)) == 2


async def test_list_is_newest_first(db, scene):
    owner_ctx, project = scene
    for title, date in [("b", "2024-02-01"), ("c", "2024-03-01"), ("a", "2024-01-01")]:
        await timeline.append_timeline_entry(db, owner_ctx, project.id, {"title": title, "date": date})
    entries = await timeline.list_timeline(db, owner_ctx, project.id)
    assert [e.title for e in entries] == ["c", "b", "a"]


async def test_editing_percentage_updates_progress(db, scene):
    owner_ctx, project = scene
    entry = await timeline.append_timeline_entry(
        db, owner_ctx, project.id, {"title": "Walls", "date": "2024-03-01", "completion_percentage": 40}
    )
    await timeline.update_timeline_entry(db, owner_ctx, project.id, entry.id, {"completion_percentage": 55})
    assert project.progress == 55


# ── HTTP ──

async def test_append_over_http(client, make_user, make_project, auth):
    owner = await make_user("carol")
    project = await make_project(owner)

    resp = await client.post(
        f"/api/projects/{project.id}/timeline",
        json={"title": "Foundation", "date": "2024-03-01", "completionPercentage": 20, "materialsUsed": [{"name": "cement"}]},
        headers=auth(owner),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["projectProgress"] == 20
    assert body["entry"]["completionPercentage"] == 20
    assert body["entry"]["materialsUsed"] == [{"name": "cement"}]

    listing = await client.get(f"/api/projects/{project.id}/timeline", headers=auth(owner))
    assert [e["title"] for e in listing.json()] == ["Foundation"]


async def test_percentage_validation_over_http(client, make_user, make_project, auth):
    owner = await make_user("carol")
    project = await make_project(owner)
    resp = await client.post(
        f"/api/projects/{project.id}/timeline",
        json={"title": "Too far", "completionPercentage": 120},
        headers=auth(owner),
    )
    assert resp.status_code == 422


async def test_upload_reports_each_image(client, make_user, make_project, auth):
    owner = await make_user("carol")
    project = await make_project(owner)

    resp = await client.post(
        f"/api/projects/{project.id}/timeline/upload",
        data={"title": "Scaffolding up", "completionPercentage": "35", "date": "2024-03-10"},
        files=[
            ("images", ("site.jpg", io.BytesIO(b"\xff\xd8\xff jpeg bytes"), "image/jpeg")),
            ("images", ("notes.txt", io.BytesIO(b"not an image"), "text/plain")),
        ],
        headers=auth(owner),
    )
    assert resp.status_code == 201
    body = resp.json()
    results = {r["filename"]: r for r in body["images"]}
    assert results["site.jpg"]["url"].startswith(f"/uploads/{project.id}/timeline/")
    assert results["site.jpg"]["error"] is None
    assert results["notes.txt"]["url"] is None
    assert "not an image" in results["notes.txt"]["error"]
    assert body["entry"]["images"] == [results["site.jpg"]["url"]]
    assert body["projectProgress"] == 35


async def test_relative_cannot_post_over_http(client, session_factory, make_user, make_project, auth):
    owner = await make_user("carol")
    gran = await make_user("gran")
    project = await make_project(owner)
    async with session_factory() as session:
        session.add(ProjectMember(project_id=project.id, user_id=gran.id, role=MemberRole.RELATIVE))
        await session.commit()

    resp = await client.post(f"/api/projects/{project.id}/timeline", json={"title": "Hi"}, headers=auth(gran))
    assert resp.status_code == 403
    assert resp.json()["code"] == "permission_denied"
