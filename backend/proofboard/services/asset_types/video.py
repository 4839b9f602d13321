"""Video handler."""
import json
import logging
import shutil
import subprocess
from typing import Any

from proofboard.services.asset_types.base import MB, AssetTypeHandler, UploadedFile

logger = logging.getLogger(__name__)


class VideoHandler(AssetTypeHandler):
    type = "video"
    display_name = "Video"
    mime_patterns = ("video/",)
    extensions = ("mp4", "mov", "webm", "avi", "mkv", "wmv", "m4v")
    max_file_size = 500 * MB
    supports_spatial_annotations = True
    supports_temporal_annotations = True

    def __init__(self, ffprobe_binary: str = "ffprobe", metadata_timeout: float = 10.0):
        self.ffprobe_binary = ffprobe_binary
        self.metadata_timeout = metadata_timeout

    @property
    def allowed_mime_types(self) -> list[str]:
        return [
            "video/mp4",
            "video/quicktime",
            "video/webm",
            "video/x-msvideo",
            "video/x-matroska",
            "video/x-ms-wmv",
        ]

    def extract_metadata(self, file: UploadedFile) -> dict[str, Any]:
        meta = super().extract_metadata(file)
        if file.path is not None:
            meta.update(self._read_stream_info(file))
        return meta

    def _read_stream_info(self, file: UploadedFile) -> dict[str, Any]:
        """Duration and frame size from ffprobe; empty when ffprobe is unavailable."""
        if shutil.which(self.ffprobe_binary) is None:
            return {}
        cmd = [
            self.ffprobe_binary, "-v", "error",
            "-show_streams", "-show_format",
            "-of", "json", str(file.path),
        ]
        try:
            p = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.metadata_timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("ffprobe failed for %s: %s", file.name, e)
            return {}
        if p.returncode != 0:
            return {}
        try:
            info = json.loads(p.stdout)
        except ValueError:
            return {}

        out: dict[str, Any] = {}
        duration = (info.get("format") or {}).get("duration")
        if duration is not None:
            try:
                out["duration"] = float(duration)
            except (TypeError, ValueError):
                pass
        streams = [s for s in info.get("streams") or [] if s.get("codec_type") == "video"]
        if streams:
            out["width"] = streams[0].get("width")
            out["height"] = streams[0].get("height")
        return out
