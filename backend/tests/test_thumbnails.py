from __future__ import annotations

from types import SimpleNamespace

import pytest
from PIL import Image

from proofboard.models.asset_version import AssetVersion
from proofboard.services.thumbnail_service import ThumbnailGenerationError, ThumbnailService
from proofboard.tasks.thumbnails import generate_thumbnail_async, retry_or_give_up

from .conftest import have_ffmpeg, pdf_bytes


class RetryRequested(Exception):
    pass


def fake_task(retries: int, max_retries: int = 2):
    calls = []

    def retry(exc, countdown):
        calls.append((exc, countdown))
        return RetryRequested(str(exc))

    task = SimpleNamespace(request=SimpleNamespace(retries=retries), max_retries=max_retries, retry=retry)
    return task, calls


@pytest.fixture
def thumbnails(store) -> ThumbnailService:
    return ThumbnailService(base_dir=store.base_dir, width=480, height=270)


def test_cover_crop_fills_box(thumbnails):
    wide = thumbnails.cover_crop(Image.new("RGB", (1920, 600)))
    tall = thumbnails.cover_crop(Image.new("RGB", (600, 1800)), top=True)
    assert wide.size == (480, 270)
    assert tall.size == (480, 270)


def test_pdf_thumbnail(thumbnails, store):
    source = store.base_dir / "assets/1/1/deck.pdf"
    source.parent.mkdir(parents=True)
    source.write_bytes(pdf_bytes(pages=2))

    result = thumbnails.generate("assets/1/1/deck.pdf", "pdf", "assets/1/thumbnails")

    assert result["path"].startswith("assets/1/thumbnails/thumb-")
    assert result["url"] == f"/api/files/{result['path']}"
    with Image.open(store.get_absolute_path(result["path"])) as im:
        assert im.size == (480, 270)
        assert im.format == "JPEG"


def test_corrupt_pdf_is_retryable(thumbnails, store):
    source = store.base_dir / "broken.pdf"
    source.write_bytes(b"%PDF-1.4 nothing here")
    with pytest.raises(ThumbnailGenerationError):
        thumbnails.generate("broken.pdf", "pdf", "assets/1/thumbnails")


def test_missing_sources_and_unknown_types(thumbnails, store):
    assert thumbnails.generate("nope.pdf", "pdf", "assets/1/thumbnails") is None
    assert thumbnails.generate("nope.mp4", "video", "assets/1/thumbnails") is None
    assert thumbnails.generate("hero.png", "image", "assets/1/thumbnails") is None


def test_video_without_ffmpeg(store):
    (store.base_dir / "spot.mp4").write_bytes(b"\x00" * 16)
    service = ThumbnailService(base_dir=store.base_dir, ffmpeg_binary="definitely-not-ffmpeg")
    assert service.generate("spot.mp4", "video", "assets/1/thumbnails") is None


@pytest.mark.skipif(not have_ffmpeg(), reason="ffmpeg not available")
def test_unreadable_video_raises(thumbnails, store):
    (store.base_dir / "spot.mp4").write_bytes(b"\x00" * 16)
    with pytest.raises(ThumbnailGenerationError):
        thumbnails.generate("spot.mp4", "video", "assets/1/thumbnails")


async def test_task_stores_thumbnail_once(
    asset_service, project, creative, stage, db, session_maker, thumbnails
):
    file = await stage(pdf_bytes(), "deck.pdf", "application/pdf")
    await asset_service.create_asset(project, creative, file)
    [job] = await asset_service.commit()

    result = await generate_thumbnail_async(*job, session_maker=session_maker, service=thumbnails)
    assert result["status"] == "generated"

    async with session_maker() as session:
        version = await session.get(AssetVersion, job.asset_version_id)
        assert version.thumbnail_url == result["thumbnail_url"]
        assert version.thumbnail_path.startswith(f"assets/{project.id}/thumbnails/")

    again = await generate_thumbnail_async(*job, session_maker=session_maker, service=thumbnails)
    assert again == {"status": "skipped", "reason": "exists"}


async def test_task_skips_missing_version(session_maker, thumbnails):
    result = await generate_thumbnail_async(404, "pdf", "x.pdf", 1, session_maker=session_maker, service=thumbnails)
    assert result == {"status": "skipped", "reason": "missing"}


async def test_task_reports_unavailable(
    asset_service, project, creative, stage, db, session_maker, thumbnails, store
):
    file = await stage(pdf_bytes(), "deck.pdf", "application/pdf")
    await asset_service.create_asset(project, creative, file)
    [job] = await asset_service.commit()
    store.get_absolute_path(job.file_path).unlink()

    result = await generate_thumbnail_async(*job, session_maker=session_maker, service=thumbnails)
    assert result == {"status": "unavailable"}


def test_retry_until_attempts_run_out():
    task, calls = fake_task(retries=0)
    with pytest.raises(RetryRequested):
        retry_or_give_up(task, ThumbnailGenerationError("ffmpeg exited with 1"), 7)
    assert len(calls) == 1

    task, calls = fake_task(retries=2)
    result = retry_or_give_up(task, ThumbnailGenerationError("ffmpeg exited with 1"), 7)
    assert result == {"status": "failed", "attempts": 3, "error": "ffmpeg exited with 1"}
    assert calls == []
