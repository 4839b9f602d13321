from __future__ import annotations

import os
import time
from datetime import datetime, timedelta, timezone

from proofboard.tasks.maintenance import purge_temp_comment_images
from proofboard.utils.storage import slugify

from .conftest import png_bytes


def _age(path, hours: float) -> None:
    stamp = time.time() - hours * 3600
    os.utime(path, (stamp, stamp))


async def test_purge_removes_only_stale_temp_images(store):
    _, old_rel = await store.save_temp_image(1, png_bytes(), "old.png")
    _, fresh_rel = await store.save_temp_image(2, png_bytes(), "fresh.png")
    old_path = store.get_absolute_path(old_rel)
    fresh_path = store.get_absolute_path(fresh_rel)
    _age(old_path, 30)

    result = purge_temp_comment_images(store, hours=24)

    assert result["deleted_files"] == 1
    assert result["removed_directories"] == 1
    assert result["dry_run"] is False
    assert not old_path.exists()
    assert not old_path.parent.exists()
    assert fresh_path.exists()


async def test_purge_dry_run_keeps_files(store):
    _, rel = await store.save_temp_image(1, png_bytes(), "old.png")
    path = store.get_absolute_path(rel)
    _age(path, 48)

    result = purge_temp_comment_images(store, hours=24, dry_run=True)

    assert result["deleted_files"] == 1
    assert result["removed_directories"] == 0
    assert path.exists()


async def test_purge_removes_empty_temp_root(store):
    _, rel = await store.save_temp_image(1, png_bytes(), "old.png")
    _age(store.get_absolute_path(rel), 30)

    stats = store.purge_temp_images(older_than=datetime.now(timezone.utc) - timedelta(hours=1))

    assert stats == {"deleted_files": 1, "removed_directories": 2, "dry_run": False}
    assert not (store.base_dir / "temp").exists()


def test_purge_without_temp_dir(store):
    stats = store.purge_temp_images(older_than=datetime.now(timezone.utc))
    assert stats["deleted_files"] == 0


async def test_find_temp_image_rejects_odd_ids(store):
    temp_id, _ = await store.save_temp_image(1, png_bytes(), "a.png")
    assert store.find_temp_image(1, temp_id) is not None
    assert store.find_temp_image(2, temp_id) is None
    assert store.find_temp_image(1, "../1/" + temp_id) is None
    assert store.find_temp_image(1, "*") is None


async def test_stage_promote_and_discard(store):
    staged = await store.stage_bytes(b"hello", "My Brief.PDF", "application/pdf")
    assert staged.path.is_file()
    assert staged.extension == "PDF"

    relative_path, url = await store.promote(staged, "assets/1/2")
    assert relative_path.startswith("assets/1/2/my-brief-")
    assert relative_path.endswith(".pdf")
    assert url == f"/api/files/{relative_path}"
    assert staged.path == store.get_absolute_path(relative_path)

    other = await store.stage_bytes(b"bye", "x.png", "image/png")
    await store.discard(other)
    assert not other.path.exists()


async def test_delete_helpers(store):
    relative_path, _ = await store.save_file(b"data", "notes.txt", "assets/9/9")
    assert await store.delete_file(relative_path) is True
    assert await store.delete_file(relative_path) is False
    assert await store.delete_directory("assets/9") is True
    assert await store.delete_directory("assets/9") is False


def test_is_within_base(store):
    assert store.is_within_base(store.get_absolute_path("assets/1/a.png"))
    assert not store.is_within_base(store.get_absolute_path("../../etc/passwd"))


def test_slugify():
    assert slugify("Hero Banner (final)") == "hero-banner-final"
    assert slugify("???") == "file"
