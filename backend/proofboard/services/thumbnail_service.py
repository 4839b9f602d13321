"""Preview thumbnails for video and PDF versions."""
import logging
import shutil
import subprocess
import uuid
from pathlib import Path

import pdfplumber
from PIL import Image

from proofboard.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class ThumbnailGenerationError(Exception):
    """The tool ran but produced no thumbnail; worth another attempt."""


class ThumbnailService:
    """Renders a fixed-size JPEG preview under the project's thumbnails folder.

    Returns None when a thumbnail cannot be produced at all (source file gone,
    ffmpeg not installed, unsupported type) and raises
    `ThumbnailGenerationError` when an attempt failed and may succeed later.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        width: int | None = None,
        height: int | None = None,
        ffmpeg_binary: str | None = None,
    ):
        self.base_dir = Path(base_dir or settings.upload_dir)
        self.width = width or settings.thumbnail_width
        self.height = height or settings.thumbnail_height
        self.ffmpeg_binary = ffmpeg_binary or settings.ffmpeg_binary

    def generate(self, file_path: str, asset_type: str, directory: str) -> dict[str, str] | None:
        if asset_type == "video":
            return self.generate_video_thumbnail(file_path, directory)
        if asset_type == "pdf":
            return self.generate_pdf_thumbnail(file_path, directory)
        logger.debug("No thumbnail renderer for type %r", asset_type)
        return None

    def _target(self, directory: str) -> tuple[str, Path]:
        relative_path = f"{directory}/thumb-{uuid.uuid4().hex}.jpg"
        full_path = self.base_dir / relative_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        return relative_path, full_path

    def _result(self, relative_path: str) -> dict[str, str]:
        return {"path": relative_path, "url": f"/api/files/{relative_path}"}

    def generate_video_thumbnail(self, file_path: str, directory: str) -> dict[str, str] | None:
        source = self.base_dir / file_path
        if not source.is_file():
            logger.warning("Video file not found at %s", source)
            return None

        ffmpeg = shutil.which(self.ffmpeg_binary)
        if not ffmpeg:
            logger.warning("ffmpeg not available, skipping video thumbnail")
            return None

        relative_path, target = self._target(directory)
        # Frame at 1s, scaled to cover the box then center-cropped.
        vf = (
            f"scale={self.width}:{self.height}:force_original_aspect_ratio=increase,"
            f"crop={self.width}:{self.height}"
        )
        cmd = [ffmpeg, "-i", str(source), "-ss", "00:00:01", "-vframes", "1", "-vf", vf, "-y", str(target)]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=120)
        except subprocess.TimeoutExpired as e:
            raise ThumbnailGenerationError(f"ffmpeg timed out for {file_path}") from e

        if proc.returncode != 0 or not target.is_file():
            logger.warning("ffmpeg failed (%s): %s", proc.returncode, proc.stderr[-500:])
            raise ThumbnailGenerationError(f"ffmpeg exited with {proc.returncode}")

        return self._result(relative_path)

    def generate_pdf_thumbnail(self, file_path: str, directory: str) -> dict[str, str] | None:
        source = self.base_dir / file_path
        if not source.is_file():
            logger.warning("PDF file not found at %s", source)
            return None

        relative_path, target = self._target(directory)
        try:
            with pdfplumber.open(source) as pdf:
                if not pdf.pages:
                    return None
                page = pdf.pages[0].to_image(resolution=150).original.convert("RGB")
        except Exception as e:  # pdfminer/pypdfium2 raise assorted parser errors
            raise ThumbnailGenerationError(f"Could not render {file_path}: {e}") from e

        self.cover_crop(page, top=True).save(target, "JPEG", quality=85)
        return self._result(relative_path)

    def cover_crop(self, image: Image.Image, top: bool = False) -> Image.Image:
        """Scale to fill the thumbnail box, then crop the overflow.

        Horizontal overflow is cropped evenly; vertical overflow is cropped
        from the bottom when `top` is set (keeps a document's header).
        """
        src_w, src_h = image.size
        if src_w / src_h > self.width / self.height:
            new_w, new_h = int(src_w * self.height / src_h), self.height
        else:
            new_w, new_h = self.width, int(src_h * self.width / src_w)
        new_w, new_h = max(new_w, self.width), max(new_h, self.height)

        resized = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
        left = (new_w - self.width) // 2
        upper = 0 if top else (new_h - self.height) // 2
        return resized.crop((left, upper, left + self.width, upper + self.height))
