"""Proprietary design file handler (Photoshop, Illustrator, Sketch, ...)."""
from typing import Any

from proofboard.services.asset_types.base import MB, AssetTypeHandler, UploadedFile


class DesignHandler(AssetTypeHandler):
    type = "design"
    display_name = "Design File"
    # Only used for detection ordering; `supports` ignores MIME entirely.
    mime_patterns = (
        "application/postscript",       # .ai, .eps
        "application/illustrator",      # .ai
        "application/x-photoshop",      # .psd
        "image/vnd.adobe.photoshop",    # .psd
        "application/x-indesign",       # .indd
        "application/sketch",           # .sketch
        "application/figma",            # Figma files
        "application/octet-stream",     # generic binary
    )
    extensions = ("ai", "psd", "eps", "indd", "sketch", "fig", "xd")
    max_file_size = 100 * MB

    @property
    def allowed_mime_types(self) -> list[str]:
        # Proprietary formats are routinely reported as application/octet-stream,
        # so validation relies on the extension alone.
        return []

    def supports(self, file: UploadedFile) -> bool:
        return self.matches_extension(file)

    def extract_metadata(self, file: UploadedFile) -> dict[str, Any]:
        meta = super().extract_metadata(file)
        meta["is_design_file"] = True
        return meta
