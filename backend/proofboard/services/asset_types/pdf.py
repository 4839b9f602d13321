"""PDF document handler."""
import logging
from typing import Any

import pdfplumber

from proofboard.services.asset_types.base import MB, AssetTypeHandler, UploadedFile

logger = logging.getLogger(__name__)


class PdfHandler(AssetTypeHandler):
    type = "pdf"
    display_name = "PDF Document"
    mime_patterns = ("application/pdf",)
    extensions = ("pdf",)
    max_file_size = 50 * MB
    # Rectangles on a PDF are scoped to a page.
    supports_spatial_annotations = True
    supports_page_annotations = True

    def extract_metadata(self, file: UploadedFile) -> dict[str, Any]:
        meta = super().extract_metadata(file)
        meta["page_count"] = self._page_count(file)
        return meta

    def _page_count(self, file: UploadedFile) -> int | None:
        if file.path is None:
            return None
        try:
            with pdfplumber.open(file.path) as pdf:
                return len(pdf.pages)
        except Exception as e:  # pdfminer raises a wide range of parser errors
            logger.debug("Could not count pages for %s: %s", file.name, e)
            return None
