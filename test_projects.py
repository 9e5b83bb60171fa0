import io
import os

from artisans.config import settings
from artisans.models.user import UserRole


async def _create(client, owner_headers, **extra):
    resp = await client.post(
        "/api/projects", json={"name": "Lakeside House", "location": "Nairobi", **extra}, headers=owner_headers
    )
    assert resp.status_code == 201
    return resp.json()


async def test_create_and_list(client, make_user, auth):
    carol = await make_user("carol")
    created = await _create(client, auth(carol), budget=1_000_000)
    assert created["clientId"] == carol.id
    assert created["status"] == "pending"
    assert created["progress"] == 0
    assert created["teamMembers"] == []

    listing = await client.get("/api/projects", headers=auth(carol))
    assert [p["id"] for p in listing.json()] == [created["id"]]


async def test_providers_cannot_create_projects(client, make_user, auth):
    pat = await make_user("pat", role=UserRole.SERVICE_PROVIDER)
    resp = await client.post("/api/projects", json={"name": "Mine"}, headers=auth(pat))
    assert resp.status_code == 403


async def test_anonymous_is_rejected(client):
    resp = await client.get("/api/projects")
    assert resp.status_code == 401
    assert resp.json()["code"] == "not_authenticated"


async def test_outsiders_cannot_view(client, make_user, make_project, auth):
    carol = await make_user("carol")
    sam = await make_user("sam")
    project = await make_project(carol)
    resp = await client.get(f"/api/projects/{project.id}", headers=auth(sam))
    assert resp.status_code == 403
    assert (await client.get("/api/projects/999", headers=auth(carol))).status_code == 404


async def test_etag_and_if_match(client, make_user, make_project, auth):
    carol = await make_user("carol")
    project = await make_project(carol)

    got = await client.get(f"/api/projects/{project.id}", headers=auth(carol))
    etag = got.headers["etag"]
    assert etag == '"1"'

    updated = await client.patch(
        f"/api/projects/{project.id}",
        json={"status": "in_progress"},
        headers={**auth(carol), "If-Match": etag},
    )
    assert updated.status_code == 200
    assert updated.json()["status"] == "in_progress"
    assert updated.headers["etag"] == '"2"'

    stale = await client.patch(
        f"/api/projects/{project.id}",
        json={"name": "Renamed"},
        headers={**auth(carol), "If-Match": etag},
    )
    assert stale.status_code == 412
    assert stale.json()["code"] == "precondition_failed"

    unconditional = await client.patch(f"/api/projects/{project.id}", json={"name": "Renamed"}, headers=auth(carol))
    assert unconditional.status_code == 200
    assert unconditional.json()["name"] == "Renamed"


async def test_team_add_and_remove(client, make_user, make_project, auth):
    carol = await make_user("carol")
    bob = await make_user("bob", role=UserRole.SERVICE_PROVIDER)
    project = await make_project(carol)

    added = await client.post(
        f"/api/projects/{project.id}/team", json={"username": "bob", "role": "project_manager"}, headers=auth(carol)
    )
    assert added.status_code == 200
    assert [(m["username"], m["role"]) for m in added.json()["teamMembers"]] == [("bob", "project_manager")]

    duplicate = await client.post(f"/api/projects/{project.id}/team", json={"username": "bob"}, headers=auth(carol))
    assert duplicate.status_code == 409

    missing = await client.post(f"/api/projects/{project.id}/team", json={"username": "nobody"}, headers=auth(carol))
    assert missing.status_code == 404

    by_member = await client.delete(f"/api/projects/{project.id}/team/{bob.id}", headers=auth(bob))
    assert by_member.status_code == 403

    removed = await client.delete(f"/api/projects/{project.id}/team/{bob.id}", headers=auth(carol))
    assert removed.json()["teamMembers"] == []


async def test_document_upload_list_delete(client, make_user, make_project, auth):
    carol = await make_user("carol")
    project = await make_project(carol)

    uploaded = await client.post(
        f"/api/projects/{project.id}/documents",
        files=[("files", ("permit.pdf", io.BytesIO(b"%PDF-1.4 permit"), "application/pdf"))],
        headers=auth(carol),
    )
    assert uploaded.status_code == 201
    [doc] = uploaded.json()["files"]
    assert doc["kind"] == "document"
    assert doc["size"] == len(b"%PDF-1.4 permit")
    stored = os.path.join(settings.UPLOAD_DIR, *doc["url"][len("/uploads/"):].split("/"))
    assert os.path.exists(stored)

    listing = await client.get(f"/api/projects/{project.id}/documents", headers=auth(carol))
    assert [d["filename"] for d in listing.json()] == ["permit.pdf"]
    assert (await client.get(f"/api/projects/{project.id}/images", headers=auth(carol))).json() == []

    deleted = await client.delete(f"/api/projects/{project.id}/documents/{doc['id']}", headers=auth(carol))
    assert deleted.status_code == 200
    assert not os.path.exists(stored)


async def test_image_upload_rejects_non_images_individually(client, make_user, make_project, auth):
    carol = await make_user("carol")
    project = await make_project(carol)
    resp = await client.post(
        f"/api/projects/{project.id}/images",
        files=[
            ("files", ("front.png", io.BytesIO(b"\x89PNG fake"), "image/png")),
            ("files", ("plan.pdf", io.BytesIO(b"%PDF"), "application/pdf")),
        ],
        headers=auth(carol),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert [f["filename"] for f in body["files"]] == ["front.png"]
    assert [r["error"] is None for r in body["results"]] == [True, False]


async def test_upload_size_limit(client, make_user, make_project, auth, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 10)
    carol = await make_user("carol")
    project = await make_project(carol)
    resp = await client.post(
        f"/api/projects/{project.id}/documents",
        files=[("files", ("big.pdf", io.BytesIO(b"x" * 64), "application/pdf"))],
        headers=auth(carol),
    )
    assert resp.status_code == 201
    assert resp.json()["files"] == []
    assert "limit" in resp.json()["results"][0]["error"]


async def test_failed_write_leaves_no_partial_file(client, make_user, make_project, auth, monkeypatch):
    from artisans.services import uploads

    real_open = uploads.aiofiles.open

    class DiskFull:
        def __init__(self, path, mode):
            self._cm = real_open(path, mode)

        async def __aenter__(self):
            self._file = await self._cm.__aenter__()
            return self

        async def __aexit__(self, *exc):
            return await self._cm.__aexit__(*exc)

        async def write(self, data):
            await self._file.write(data[:4])
            raise OSError(28, "No space left on device")

    monkeypatch.setattr(uploads.aiofiles, "open", DiskFull)
    carol = await make_user("carol")
    project = await make_project(carol)
    resp = await client.post(
        f"/api/projects/{project.id}/documents",
        files=[("files", ("plan.pdf", io.BytesIO(b"%PDF-1.4 floor plan"), "application/pdf"))],
        headers=auth(carol),
    )
    assert resp.status_code == 201
    assert resp.json()["files"] == []
    assert "No space left" in resp.json()["results"][0]["error"]
    target_dir = os.path.join(settings.UPLOAD_DIR, str(project.id), "documents")
    assert not [name for name in os.listdir(target_dir) if name.endswith("plan.pdf")]
