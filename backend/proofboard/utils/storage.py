"""File storage utilities.

Layout under `upload_dir`:

    staging/<uuid><ext>                         uploads awaiting validation
    assets/<project_id>/<asset_id>/<file>       version files
    assets/<project_id>/<asset_id>/thumbnails/  generated thumbnails
    assets/<project_id>/<asset_id>/comments/    images attached to comments
    temp/<user_id>/<temp_id>.<ext>              comment images not yet attached
"""
import asyncio
import logging
import os
import re
import shutil
import uuid
from datetime import datetime
from pathlib import Path

import aiofiles
from fastapi import UploadFile

from proofboard.config import get_settings
from proofboard.services.asset_types import UploadedFile

settings = get_settings()
logger = logging.getLogger(__name__)

TEMP_DIR = "temp"
STAGING_DIR = "staging"
_TEMP_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", value).strip("-").lower()
    return slug or "file"


class StorageService:
    """Local file storage service with cloud storage interface."""

    def __init__(self, base_dir: str | Path | None = None, chunk_size: int | None = None):
        self.base_dir = Path(base_dir or settings.upload_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size or settings.upload_chunk_size

    def _generate_filename(self, original_filename: str) -> str:
        """`<slug>-<uuid>.<ext>` keeps the original name readable and unique."""
        path = Path(original_filename)
        ext = path.suffix.lower()
        return f"{slugify(path.stem)}-{uuid.uuid4().hex}{ext}"

    @staticmethod
    def asset_directory(project_id: int, asset_id: int) -> str:
        return f"assets/{project_id}/{asset_id}"

    async def stage_upload(self, upload: UploadFile) -> UploadedFile:
        """Stream an incoming upload to the staging area."""
        filename = upload.filename or "upload"
        dir_path = self.base_dir / STAGING_DIR
        dir_path.mkdir(parents=True, exist_ok=True)
        target = dir_path / f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"

        size = 0
        try:
            async with aiofiles.open(target, "wb") as f:
                while True:
                    chunk = await upload.read(self.chunk_size)
                    if not chunk:
                        break
                    await f.write(chunk)
                    size += len(chunk)
        finally:
            await upload.close()

        return UploadedFile(
            name=filename,
            mime_type=upload.content_type,
            size=size,
            path=target,
        )

    async def stage_bytes(self, content: bytes, filename: str, mime_type: str | None) -> UploadedFile:
        """Stage in-memory content (internal callers and tests)."""
        dir_path = self.base_dir / STAGING_DIR
        dir_path.mkdir(parents=True, exist_ok=True)
        target = dir_path / f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
        async with aiofiles.open(target, "wb") as f:
            await f.write(content)
        return UploadedFile(name=filename, mime_type=mime_type, size=len(content), path=target)

    async def discard(self, file: UploadedFile) -> None:
        """Remove a staged file that will not be kept."""
        if file.path is not None:
            await asyncio.to_thread(file.path.unlink, True)

    async def promote(self, file: UploadedFile, directory: str) -> tuple[str, str]:
        """
        Move a staged file into its permanent directory.

        Returns:
            tuple: (relative_path, file_url)
        """
        if file.path is None:
            raise ValueError("Only staged files can be promoted")

        filename = self._generate_filename(file.name)
        dir_path = self.base_dir / directory
        dir_path.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(shutil.move, str(file.path), str(dir_path / filename))
        file.path = dir_path / filename

        relative_path = f"{directory}/{filename}"
        return relative_path, self.get_file_url(relative_path)

    async def save_file(self, content: bytes, original_filename: str, subfolder: str) -> tuple[str, str]:
        """
        Save file to storage.

        Returns:
            tuple: (relative_path, filename)
        """
        filename = self._generate_filename(original_filename)
        dir_path = self.base_dir / subfolder
        dir_path.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(dir_path / filename, "wb") as f:
            await f.write(content)

        return f"{subfolder}/{filename}", filename

    async def save_temp_image(self, user_id: int, content: bytes, original_filename: str) -> tuple[str, str]:
        """
        Store a comment image uploaded before its comment exists.

        Returns:
            tuple: (temp_id, relative_path)
        """
        temp_id = uuid.uuid4().hex
        ext = Path(original_filename).suffix.lower()
        dir_path = self.base_dir / TEMP_DIR / str(user_id)
        dir_path.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(dir_path / f"{temp_id}{ext}", "wb") as f:
            await f.write(content)

        return temp_id, f"{TEMP_DIR}/{user_id}/{temp_id}{ext}"

    def find_temp_image(self, user_id: int, temp_id: str) -> Path | None:
        """Locate a pending temp image; only the owner's folder is searched."""
        if not _TEMP_ID_RE.match(temp_id):
            return None
        dir_path = self.base_dir / TEMP_DIR / str(user_id)
        if not dir_path.is_dir():
            return None
        for candidate in dir_path.glob(f"{temp_id}*"):
            if candidate.is_file():
                return candidate
        return None

    async def attach_temp_image(self, user_id: int, temp_id: str, directory: str) -> str | None:
        """Move a temp image under `directory`; returns its new relative path."""
        source = self.find_temp_image(user_id, temp_id)
        if source is None:
            return None
        dir_path = self.base_dir / directory
        dir_path.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.move, str(source), str(dir_path / source.name))
        return f"{directory}/{source.name}"

    async def delete_file(self, relative_path: str) -> bool:
        """Delete file from storage."""
        file_path = self.base_dir / relative_path
        try:
            if file_path.exists():
                os.remove(file_path)
                return True
            return False
        except OSError:
            logger.warning("Could not delete %s", file_path, exc_info=True)
            return False

    async def delete_directory(self, relative_path: str) -> bool:
        """Recursively delete a directory (e.g. everything stored for one asset)."""
        dir_path = self.base_dir / relative_path
        if not dir_path.is_dir():
            return False
        await asyncio.to_thread(shutil.rmtree, dir_path, True)
        return True

    def purge_temp_images(self, older_than: datetime, dry_run: bool = False) -> dict:
        """Delete temp comment images last modified before `older_than`.

        Empty per-user folders (and the temp root) are removed afterwards.
        """
        base = self.base_dir / TEMP_DIR
        stats = {"deleted_files": 0, "removed_directories": 0, "dry_run": dry_run}
        if not base.is_dir():
            return stats

        cutoff = older_than.timestamp()
        for user_dir in sorted(p for p in base.iterdir() if p.is_dir()):
            for file_path in sorted(p for p in user_dir.iterdir() if p.is_file()):
                if file_path.stat().st_mtime >= cutoff:
                    continue
                if dry_run:
                    logger.info("Would delete %s", file_path)
                else:
                    file_path.unlink(missing_ok=True)
                stats["deleted_files"] += 1

            if not dry_run and not any(user_dir.iterdir()):
                user_dir.rmdir()
                stats["removed_directories"] += 1

        if not dry_run and not any(base.iterdir()):
            base.rmdir()
            stats["removed_directories"] += 1

        return stats

    def get_file_url(self, relative_path: str) -> str:
        """
        Get public URL for file.

        For local storage, returns API path.
        Override this for cloud storage implementations.
        """
        return f"/api/files/{relative_path}"

    def get_absolute_path(self, relative_path: str) -> Path:
        """Get absolute filesystem path for file."""
        return self.base_dir / relative_path

    def is_within_base(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.base_dir.resolve())
        except ValueError:
            return False
        return True


# Global storage instance
storage = StorageService()
