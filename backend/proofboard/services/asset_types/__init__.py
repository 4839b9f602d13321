"""Pluggable asset type handlers."""
from proofboard.config import Settings, get_settings
from proofboard.services.asset_types.base import (
    AnnotationCapabilities,
    AssetTypeHandler,
    UploadedFile,
)
from proofboard.services.asset_types.design import DesignHandler
from proofboard.services.asset_types.image import ImageHandler
from proofboard.services.asset_types.pdf import PdfHandler
from proofboard.services.asset_types.registry import FALLBACK_TYPE, AssetTypeRegistry
from proofboard.services.asset_types.video import VideoHandler


def build_default_registry(settings: Settings | None = None) -> AssetTypeRegistry:
    """Registry with the built-in image, video, pdf and design handlers."""
    settings = settings or get_settings()
    return AssetTypeRegistry(
        [
            ImageHandler(),
            VideoHandler(
                ffprobe_binary=settings.ffprobe_binary,
                metadata_timeout=settings.metadata_timeout_seconds,
            ),
            PdfHandler(),
            DesignHandler(),
        ],
        default_max_file_size=settings.default_max_file_size,
    )


__all__ = [
    "AnnotationCapabilities",
    "AssetTypeHandler",
    "AssetTypeRegistry",
    "DesignHandler",
    "FALLBACK_TYPE",
    "ImageHandler",
    "PdfHandler",
    "UploadedFile",
    "VideoHandler",
    "build_default_registry",
]
