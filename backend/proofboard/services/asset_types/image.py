"""Raster and vector image handler."""
import logging
from typing import Any

from PIL import Image

from proofboard.services.asset_types.base import MB, AssetTypeHandler, UploadedFile

logger = logging.getLogger(__name__)


class ImageHandler(AssetTypeHandler):
    type = "image"
    display_name = "Image"
    mime_patterns = ("image/",)
    extensions = ("jpg", "jpeg", "png", "gif", "webp", "svg", "bmp", "tiff")
    max_file_size = 50 * MB
    supports_spatial_annotations = True

    @property
    def allowed_mime_types(self) -> list[str]:
        return [
            "image/jpeg",
            "image/png",
            "image/gif",
            "image/webp",
            "image/svg+xml",
            "image/bmp",
            "image/tiff",
        ]

    def extract_metadata(self, file: UploadedFile) -> dict[str, Any]:
        meta = super().extract_metadata(file)

        # Dimensions come from the decoded header only. SVG and corrupt files
        # simply report no dimensions.
        if file.path is not None:
            try:
                with Image.open(file.path) as im:
                    meta["width"], meta["height"] = im.size
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                logger.debug("Could not read image dimensions for %s: %s", file.name, e)

        return meta
