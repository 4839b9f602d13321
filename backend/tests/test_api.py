from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from proofboard.api.deps import get_storage
from proofboard.database import get_db
from proofboard.main import app
from proofboard.models.asset import Asset
from proofboard.models.asset_version import AssetVersion
from proofboard.services.notifications import NotificationDispatcher
from proofboard.utils.rate_limiter import limiter
from proofboard.utils.security import create_access_token

from .conftest import pdf_bytes, png_bytes


@pytest_asyncio.fixture
async def client(session_maker, store, db):
    # Fixture rows live in the `db` session; requests use their own sessions.
    async def commit_fixtures(request):
        await db.commit()

    async def override_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_storage] = lambda: store
    limiter.enabled = False

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://test", event_hooks={"request": [commit_fixtures]}
    ) as c:
        yield c

    app.dependency_overrides.clear()
    limiter.enabled = True


def auth(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def upload_image(client, project, user, title="Hero Banner"):
    return await client.post(
        f"/api/projects/{project.id}/assets",
        headers=auth(user),
        files={"file": ("hero.png", png_bytes(), "image/png")},
        data={"title": title},
    )


async def test_register_login_refresh(client):
    first = await client.post("/api/auth/register", json={
        "email": "owner@studio.io", "username": "owner", "password": "s3cret-pass", "role": "admin",
    })
    assert first.status_code == 201
    assert first.json()["role"] == "admin"

    escalation = await client.post("/api/auth/register", json={
        "email": "pm@studio.io", "username": "sneaky", "password": "s3cret-pass", "role": "pm",
    })
    assert escalation.status_code == 400

    duplicate = await client.post("/api/auth/register", json={
        "email": "owner@studio.io", "username": "other", "password": "s3cret-pass",
    })
    assert duplicate.status_code == 400

    login = await client.post("/api/auth/login", json={"email": "owner@studio.io", "password": "s3cret-pass"})
    assert login.status_code == 200
    tokens = login.json()

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.json()["username"] == "owner"

    # A refresh token is not an access token.
    rejected = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})
    assert rejected.status_code == 401

    refreshed = await client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200

    bad_login = await client.post("/api/auth/login", json={"email": "owner@studio.io", "password": "wrong-pass"})
    assert bad_login.status_code == 401


async def test_requires_authentication(client):
    response = await client.get("/api/assets")
    assert response.status_code == 401


async def test_project_creation_and_members(client, pm, creative, reviewer):
    created = await client.post("/api/projects", headers=auth(pm), json={"name": "Launch", "client_name": "Acme"})
    assert created.status_code == 201
    project_id = created.json()["id"]

    denied = await client.post("/api/projects", headers=auth(creative), json={"name": "Mine"})
    assert denied.status_code == 403

    added = await client.post(
        f"/api/projects/{project_id}/members", headers=auth(pm), json={"user_id": creative.id}
    )
    assert added.status_code == 201
    assert added.json()["user"]["username"] == creative.username

    again = await client.post(
        f"/api/projects/{project_id}/members", headers=auth(pm), json={"user_id": creative.id}
    )
    assert again.status_code == 409

    members = await client.get(f"/api/projects/{project_id}/members", headers=auth(creative))
    assert {m["user_id"] for m in members.json()} == {pm.id, creative.id}

    outsider = await client.get(f"/api/projects/{project_id}", headers=auth(reviewer))
    assert outsider.status_code == 403

    listed = await client.get("/api/projects", headers=auth(creative))
    assert [p["id"] for p in listed.json()["projects"]] == [project_id]


async def test_review_flow(client, project, pm, creative, reviewer):
    created = await upload_image(client, project, creative)
    assert created.status_code == 201
    body = created.json()
    asset_id = body["id"]
    assert body["type"] == "image"
    assert body["status"] == "pending_review"
    assert body["type_display_name"] == "Image"
    assert body["annotation_capabilities"] == {"spatial": True, "temporal": False, "paged": False}
    assert [v["version_number"] for v in body["versions"]] == [1]

    # Pending work is hidden from the client side.
    hidden = await client.get(f"/api/assets/{asset_id}", headers=auth(reviewer))
    assert hidden.status_code == 403

    denied = await client.post(f"/api/assets/{asset_id}/approve", headers=auth(creative))
    assert denied.status_code == 403

    opened = await client.get(f"/api/assets/{asset_id}", headers=auth(pm))
    assert opened.json()["status"] == "in_review"

    sent = await client.post(f"/api/assets/{asset_id}/send-to-client", headers=auth(pm))
    assert sent.json()["status"] == "client_review"

    visible = await client.get(f"/api/assets/{asset_id}", headers=auth(reviewer))
    assert visible.status_code == 200

    comment = await client.post(
        f"/api/assets/{asset_id}/comments",
        headers=auth(reviewer),
        json={"content": "Logo too small", "rectangle": {"x": 0.1, "y": 0.1, "width": 0.2, "height": 0.2}},
    )
    assert comment.status_code == 201
    assert comment.json()["user"]["id"] == reviewer.id

    revision = await client.post(f"/api/assets/{asset_id}/request-revision", headers=auth(pm))
    assert revision.json()["status"] == "revision_requested"

    version = await client.post(
        f"/api/assets/{asset_id}/versions",
        headers=auth(creative),
        files={"file": ("hero-v2.png", png_bytes(color="blue"), "image/png")},
        data={"version_notes": "Bigger logo"},
    )
    assert version.status_code == 201
    assert version.json()["version_number"] == 2

    approved = await client.post(
        f"/api/assets/{asset_id}/approve", headers=auth(pm), json={"comment": "Ship it"}
    )
    assert approved.json()["status"] == "approved"

    history = await client.get(f"/api/assets/{asset_id}/history", headers=auth(pm))
    assert [log["action"] for log in history.json()["approval_logs"]] == ["approved", "revision_requested"]

    threads = await client.get(f"/api/assets/{asset_id}/comments?version=1", headers=auth(pm))
    assert [t["content"] for t in threads.json()] == ["Logo too small"]


async def test_locked_asset_upload_is_forbidden(client, project, pm, creative):
    asset_id = (await upload_image(client, project, creative)).json()["id"]

    locked = await client.post(f"/api/assets/{asset_id}/lock", headers=auth(pm), json={"reason": "Final"})
    assert locked.json()["is_locked"] is True

    not_allowed = await client.post(f"/api/assets/{asset_id}/lock", headers=auth(creative))
    assert not_allowed.status_code == 403

    response = await client.post(
        f"/api/assets/{asset_id}/versions",
        headers=auth(creative),
        files={"file": ("hero.png", png_bytes(), "image/png")},
    )
    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["locked_by"] == pm.display_name
    assert detail["locked_at"]

    unlocked = await client.post(f"/api/assets/{asset_id}/unlock", headers=auth(pm))
    assert unlocked.json()["is_locked"] is False


async def test_invalid_uploads_and_annotations(client, project, creative, reviewer):
    bad = await client.post(
        f"/api/projects/{project.id}/assets",
        headers=auth(creative),
        files={"file": ("fav.ico", b"\x00\x00\x01\x00", "image/x-icon")},
    )
    assert bad.status_code == 422
    assert bad.json()["detail"] == {"file": ["File type is not allowed for this asset type."]}

    asset_id = (await upload_image(client, project, creative)).json()["id"]

    unsupported = await client.post(
        f"/api/assets/{asset_id}/comments",
        headers=auth(creative),
        json={"content": "At five seconds", "video_timestamp": 5},
    )
    assert unsupported.status_code == 403

    empty = await client.post(f"/api/assets/{asset_id}/comments", headers=auth(creative), json={"content": ""})
    assert empty.status_code == 422

    missing = await client.get("/api/assets/9999", headers=auth(creative))
    assert missing.status_code == 404


async def test_temp_images_flow(client, project, creative):
    asset_id = (await upload_image(client, project, creative)).json()["id"]

    rejected = await client.post(
        "/api/comment-images/temp",
        headers=auth(creative),
        files={"image": ("notes.txt", b"hi", "text/plain")},
    )
    assert rejected.status_code == 422

    uploaded = await client.post(
        "/api/comment-images/temp",
        headers=auth(creative),
        files={"image": ("shot.png", png_bytes(), "image/png")},
    )
    assert uploaded.status_code == 201
    temp = uploaded.json()

    preview = await client.get(temp["preview_url"], headers=auth(creative))
    assert preview.status_code == 200

    comment = await client.post(
        f"/api/assets/{asset_id}/comments",
        headers=auth(creative),
        json={"content": "See attached", "temp_image_ids": [temp["temp_id"]]},
    )
    [image] = comment.json()["images"]

    served = await client.get(image["url"])
    assert served.status_code == 200
    assert served.content == png_bytes()

    gone = await client.get(temp["preview_url"], headers=auth(creative))
    assert gone.status_code == 404

    removed = await client.delete(f"/api/comments/{comment.json()['id']}/images/0", headers=auth(creative))
    assert removed.json()["images"] is None


async def test_download_and_asset_types(client, project, creative):
    asset_id = (await upload_image(client, project, creative, title="Spring Hero")).json()["id"]

    download = await client.get(f"/api/assets/{asset_id}/download", headers=auth(creative))
    assert download.json()["filename"] == "Spring_Hero_v1.png"

    missing = await client.get(f"/api/assets/{asset_id}/download/5", headers=auth(creative))
    assert missing.status_code == 404

    types = await client.get("/api/asset-types", headers=auth(creative))
    assert {t["type"] for t in types.json()} == {"image", "video", "pdf", "design"}


@pytest.mark.parametrize("path", ["/health", "/"])
async def test_public_endpoints(client, path):
    response = await client.get(path)
    assert response.status_code == 200


async def test_workers_and_subscribers_see_committed_rows(client, project, creative, session_maker, monkeypatch):
    queued_versions = []
    notified_assets = []

    async def record_job(job):
        async with session_maker() as session:
            queued_versions.append(await session.get(AssetVersion, job.asset_version_id))

    async def record_event(event):
        async with session_maker() as session:
            notified_assets.append(await session.get(Asset, event.asset_id))

    monkeypatch.setattr("proofboard.api.assets.enqueue_thumbnail", record_job)
    monkeypatch.setattr(app.state, "notifier", NotificationDispatcher([record_event]))

    response = await client.post(
        f"/api/projects/{project.id}/assets",
        headers=auth(creative),
        files={"file": ("deck.pdf", pdf_bytes(), "application/pdf")},
    )
    assert response.status_code == 201
    asset_id = response.json()["id"]

    [version] = queued_versions
    assert version is not None
    assert version.asset_id == asset_id
    [asset] = notified_assets
    assert asset is not None
    assert asset.id == asset_id


async def test_admin_user_management(client, admin, pm, creative):
    payload = {
        "email": "lead@studio.io", "username": "lead", "password": "s3cret-pass", "name": "Lee Lead", "role": "pm",
    }
    denied = await client.post("/api/admin/users", headers=auth(pm), json=payload)
    assert denied.status_code == 403

    created = await client.post("/api/admin/users", headers=auth(admin), json=payload)
    assert created.status_code == 201
    assert created.json()["role"] == "pm"
    user_id = created.json()["id"]

    duplicate = await client.post("/api/admin/users", headers=auth(admin), json=payload)
    assert duplicate.status_code == 400

    listing = await client.get("/api/admin/users", headers=auth(admin), params={"role": "pm"})
    assert listing.json()["total"] == 2

    updated = await client.patch(f"/api/admin/users/{user_id}", headers=auth(admin), json={"is_active": False})
    assert updated.json()["is_active"] is False

    directory = await client.get("/api/users", headers=auth(pm))
    assert directory.status_code == 200
    assert user_id not in {u["id"] for u in directory.json()}
    assert (await client.get("/api/users", headers=auth(creative))).status_code == 403

    own = await client.delete(f"/api/admin/users/{admin.id}", headers=auth(admin))
    assert own.status_code == 400
    deleted = await client.delete(f"/api/admin/users/{user_id}", headers=auth(admin))
    assert deleted.json() == {"message": "User deleted successfully."}
    missing = await client.patch(f"/api/admin/users/{user_id}", headers=auth(admin), json={"name": "Gone"})
    assert missing.status_code == 404


async def test_comment_mentions_are_returned(client, project, creative, reviewer, pm):
    asset_id = (await upload_image(client, project, creative)).json()["id"]
    response = await client.post(
        f"/api/assets/{asset_id}/comments",
        headers=auth(creative),
        json={"content": f"@user:{pm.id} can you check the logo?"},
    )
    assert response.status_code == 201
    assert [u["id"] for u in response.json()["mentions"]] == [pm.id]
