from __future__ import annotations

import pytest
from sqlalchemy import func, select

from proofboard.models.comment import Comment, comment_mentions
from proofboard.models.user import UserRole
from proofboard.services.comment_service import extract_mentioned_user_ids
from proofboard.services.exceptions import (
    AnnotationNotSupportedError,
    InvalidAnnotationError,
    InvalidStateError,
    NotFoundError,
)
from proofboard.services.notifications import EventKind

from .conftest import pdf_bytes, png_bytes

RECT = {"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.25}


@pytest.fixture
def upload(asset_service, project, creative, stage):
    async def _upload(content: bytes, filename: str, mime_type: str | None):
        file = await stage(content, filename, mime_type)
        return await asset_service.create_asset(project, creative, file)

    return _upload


async def test_rectangle_on_image(comment_service, image_asset, reviewer, events):
    comment = await comment_service.create(image_asset, reviewer, "Logo is cropped", rectangle=RECT)
    assert comment.rectangle == RECT
    assert comment.asset_version == 1
    assert comment.has_annotation
    await comment_service.commit()
    assert events[-1].kind == EventKind.COMMENT_CREATED
    assert events[-1].extra == {"comment_id": comment.id, "is_reply": False}


async def test_timestamp_on_image_is_rejected(comment_service, image_asset, reviewer, db):
    with pytest.raises(AnnotationNotSupportedError, match="timestamp"):
        await comment_service.create(image_asset, reviewer, "At 0:05", video_timestamp=5.0)
    assert await db.scalar(select(func.count(Comment.id))) == 0


async def test_design_accepts_no_annotations(comment_service, upload, reviewer):
    asset = await upload(b"8BPS" + b"\x00" * 64, "cover.psd", "application/octet-stream")
    assert asset.type == "design"

    with pytest.raises(AnnotationNotSupportedError, match="Design File"):
        await comment_service.create(asset, reviewer, "Here", rectangle=RECT)

    comment = await comment_service.create(asset, reviewer, "Overall looks good")
    assert comment.rectangle is None


async def test_video_timestamp_and_rectangle(comment_service, upload, reviewer):
    asset = await upload(b"\x00" * 64, "spot.mp4", "video/mp4")
    comment = await comment_service.create(
        asset, reviewer, "Flash frame", rectangle=RECT, video_timestamp=75.4
    )
    assert comment.video_timestamp == 75.4
    assert comment.formatted_timestamp == "01:15"

    with pytest.raises(InvalidAnnotationError):
        await comment_service.create(asset, reviewer, "Before start", video_timestamp=-1)
    with pytest.raises(AnnotationNotSupportedError, match="page"):
        await comment_service.create(asset, reviewer, "Page?", page_number=1)


async def test_pdf_page_numbers(comment_service, upload, reviewer):
    asset = await upload(pdf_bytes(pages=3), "deck.pdf", "application/pdf")

    comment = await comment_service.create(asset, reviewer, "Typo", rectangle=RECT, page_number=3)
    assert comment.page_number == 3

    with pytest.raises(InvalidAnnotationError, match="exceed 3"):
        await comment_service.create(asset, reviewer, "Missing page", page_number=4)
    with pytest.raises(InvalidAnnotationError):
        await comment_service.create(asset, reviewer, "Zero", page_number=0)
    with pytest.raises(AnnotationNotSupportedError):
        await comment_service.create(asset, reviewer, "When?", video_timestamp=3.0)


@pytest.mark.parametrize(
    "rectangle",
    [
        {"x": 0.1, "y": 0.2, "width": 0.3},
        {"x": 1.2, "y": 0.2, "width": 0.3, "height": 0.1},
        {"x": "left", "y": 0.2, "width": 0.3, "height": 0.1},
    ],
)
async def test_malformed_rectangles(comment_service, image_asset, reviewer, rectangle):
    with pytest.raises(InvalidAnnotationError):
        await comment_service.create(image_asset, reviewer, "Bad box", rectangle=rectangle)


async def test_replies_inherit_version_and_drop_anchors(
    comment_service, asset_service, image_asset, reviewer, creative, stage, events
):
    parent = await comment_service.create(image_asset, reviewer, "Too dark", rectangle=RECT)

    file = await stage(png_bytes(color="white"), "hero.png", "image/png")
    await asset_service.upload_version(image_asset, creative, file)
    assert image_asset.current_version == 2

    reply = await comment_service.create(
        image_asset, creative, "Brightened in v2", rectangle=RECT, parent_id=parent.id
    )
    assert reply.asset_version == 1
    assert reply.rectangle is None
    assert reply.is_reply
    await comment_service.commit()
    assert events[-1].extra["is_reply"] is True

    with pytest.raises(InvalidStateError, match="reply to a reply"):
        await comment_service.create(image_asset, reviewer, "Nested", parent_id=reply.id)
    with pytest.raises(NotFoundError):
        await comment_service.create(image_asset, reviewer, "Orphan", parent_id=9999)


async def test_parent_must_belong_to_asset(comment_service, upload, image_asset, reviewer):
    other = await upload(png_bytes(), "alt.png", "image/png")
    parent = await comment_service.create(other, reviewer, "On the other asset")
    with pytest.raises(InvalidStateError, match="does not belong"):
        await comment_service.create(image_asset, reviewer, "Reply", parent_id=parent.id)


async def test_list_comments_scoping(
    comment_service, asset_service, image_asset, reviewer, pm, creative, stage
):
    first = await comment_service.create(image_asset, reviewer, "v1 note")
    await comment_service.create(image_asset, pm, "v1 internal note")
    await comment_service.create(image_asset, creative, "Reply", parent_id=first.id)

    file = await stage(png_bytes(), "hero.png", "image/png")
    await asset_service.upload_version(image_asset, creative, file)
    await comment_service.create(image_asset, pm, "v2 note")

    current = await comment_service.list_comments(image_asset, viewer=pm)
    assert [c.content for c in current] == ["v2 note"]

    v1 = await comment_service.list_comments(image_asset, viewer=pm, version=1)
    assert [c.content for c in v1] == ["v1 note", "v1 internal note"]
    assert [r.content for r in v1[0].replies] == ["Reply"]

    everything = await comment_service.list_comments(image_asset, viewer=pm, all_versions=True)
    assert len(everything) == 3

    own = await comment_service.list_comments(image_asset, viewer=reviewer, all_versions=True)
    assert [c.content for c in own] == ["v1 note"]


async def test_resolve_round_trip(comment_service, image_asset, reviewer, creative):
    comment = await comment_service.create(image_asset, reviewer, "Fix kerning")

    await comment_service.resolve(comment, creative)
    assert comment.is_resolved is True
    assert comment.resolved_by == creative.id
    assert comment.resolved_at is not None

    unresolved = await comment_service.list_comments(image_asset, resolved=False)
    assert unresolved == []

    await comment_service.unresolve(comment)
    assert (comment.is_resolved, comment.resolved_by, comment.resolved_at) == (False, None, None)


async def test_update_and_delete_cascades_replies(comment_service, image_asset, reviewer, creative, db):
    parent = await comment_service.create(image_asset, reviewer, "Original")
    await comment_service.create(image_asset, creative, "Reply", parent_id=parent.id)

    await comment_service.update(parent, "Edited")
    assert (await comment_service.get_comment(parent.id)).content == "Edited"

    await comment_service.delete(await comment_service.get_comment(parent.id))
    assert await db.scalar(select(func.count(Comment.id))) == 0


async def test_temp_images_are_attached_and_removed(comment_service, image_asset, reviewer, store):
    temp_id, temp_path = await store.save_temp_image(reviewer.id, png_bytes(), "screenshot.png")
    assert store.find_temp_image(reviewer.id, temp_id) is not None

    comment = await comment_service.create(
        image_asset, reviewer, "See screenshot", temp_image_ids=[temp_id, "0" * 32]
    )
    [image] = comment.images
    assert image["path"].startswith(f"assets/{image_asset.project_id}/{image_asset.id}/comments/{comment.id}/")
    assert image["mime_type"] == "image/png"
    assert image["url"] == f"/api/files/{image['path']}"
    assert store.get_absolute_path(image["path"]).is_file()
    assert not store.get_absolute_path(temp_path).exists()
    assert store.find_temp_image(reviewer.id, temp_id) is None

    await comment_service.remove_image(comment, 0)
    assert comment.images is None
    assert not store.get_absolute_path(image["path"]).exists()

    with pytest.raises(NotFoundError):
        await comment_service.remove_image(comment, 0)


async def test_other_users_temp_images_are_ignored(comment_service, image_asset, reviewer, creative, store):
    temp_id, _ = await store.save_temp_image(creative.id, png_bytes(), "mine.png")
    comment = await comment_service.create(image_asset, reviewer, "Steal", temp_image_ids=[temp_id])
    assert comment.images == []
    assert store.find_temp_image(creative.id, temp_id) is not None


async def test_delete_removes_image_files(comment_service, image_asset, reviewer, store):
    temp_id, _ = await store.save_temp_image(reviewer.id, png_bytes(), "shot.png")
    comment = await comment_service.create(image_asset, reviewer, "With image", temp_image_ids=[temp_id])
    path = store.get_absolute_path(comment.images[0]["path"])

    await comment_service.delete(comment)
    assert not path.exists()


def test_extract_mentioned_user_ids():
    assert extract_mentioned_user_ids("@user:3 and @user:12, again @user:3") == [3, 12]
    assert extract_mentioned_user_ids("mail me@user:x or @user:7a") == []
    assert extract_mentioned_user_ids("no mentions") == []


async def test_mentions_are_limited_to_project_members(
    comment_service, image_asset, reviewer, creative, admin, make_user, events, db
):
    outsider = await make_user(UserRole.CREATIVE)
    content = (
        f"@user:{creative.id} please fix, cc @user:{admin.id} @user:{outsider.id} "
        f"@user:{reviewer.id} @user:{creative.id} @user:9999"
    )
    comment = await comment_service.create(image_asset, reviewer, content)
    assert [u.id for u in comment.mentions] == sorted([creative.id, admin.id, reviewer.id])
    assert await db.scalar(select(func.count()).select_from(comment_mentions)) == 3

    await comment_service.commit()
    assert [e.kind for e in events] == [EventKind.COMMENT_CREATED, EventKind.USER_MENTIONED]
    # The author is not told about their own mention.
    assert events[-1].extra == {"comment_id": comment.id, "user_ids": [creative.id, admin.id]}


async def test_self_mention_sends_no_mention_event(comment_service, image_asset, reviewer, events):
    comment = await comment_service.create(image_asset, reviewer, f"Note to self @user:{reviewer.id}")
    assert [u.id for u in comment.mentions] == [reviewer.id]
    await comment_service.commit()
    assert [e.kind for e in events] == [EventKind.COMMENT_CREATED]


async def test_reply_mentions_are_loaded_with_the_thread(comment_service, image_asset, reviewer, creative):
    parent = await comment_service.create(image_asset, reviewer, "Colors are off")
    await comment_service.create(image_asset, creative, f"Fixed, @user:{reviewer.id}", parent_id=parent.id)

    thread = await comment_service.get_comment(parent.id)
    assert thread.mentions == []
    assert [u.id for u in thread.replies[0].mentions] == [reviewer.id]
