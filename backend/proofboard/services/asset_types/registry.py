"""Asset type registry: handler lookup and type detection."""
import logging
from typing import Any, Iterable

from proofboard.services.asset_types.base import (
    MB,
    AnnotationCapabilities,
    AssetTypeHandler,
    UploadedFile,
    base_metadata,
)

logger = logging.getLogger(__name__)

FALLBACK_TYPE = "design"
DEFAULT_MAX_FILE_SIZE = 50 * MB


class AssetTypeRegistry:
    """Holds every handler and decides which one owns an uploaded file.

    Handlers are keyed by type identifier. A second, derived list orders them
    for detection: handlers without any prefix MIME pattern are tried before
    handlers with one, so an exact `application/pdf` match is never shadowed
    by a broad `image/` style prefix. Registration order is kept within each
    group.
    """

    def __init__(
        self,
        handlers: Iterable[AssetTypeHandler] = (),
        default_max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        self._handlers: dict[str, AssetTypeHandler] = {}
        self._detection_order: list[AssetTypeHandler] = []
        self.default_max_file_size = default_max_file_size
        for handler in handlers:
            self.register(handler)

    def register(self, handler: AssetTypeHandler) -> None:
        """Insert or replace the handler for `handler.type`."""
        self._handlers[handler.type] = handler
        self._update_detection_order()

    def _update_detection_order(self) -> None:
        # sorted() is stable, so equal keys keep registration order.
        self._detection_order = sorted(
            self._handlers.values(),
            key=lambda h: h.has_prefix_pattern,
        )

    @property
    def detection_order(self) -> list[str]:
        return [h.type for h in self._detection_order]

    def get(self, type: str) -> AssetTypeHandler | None:
        return self._handlers.get(type)

    def all(self) -> dict[str, AssetTypeHandler]:
        return dict(self._handlers)

    def types(self) -> list[str]:
        return list(self._handlers)

    def __contains__(self, type: str) -> bool:
        return type in self._handlers

    def determine_type(self, file: UploadedFile) -> str:
        """Type of the first handler (in detection order) that supports the file."""
        for handler in self._detection_order:
            if handler.supports(file):
                return handler.type

        logger.info(
            "No handler matched %s (%s), falling back to %r",
            file.name, file.mime_type, FALLBACK_TYPE,
        )
        return FALLBACK_TYPE

    def resolve(self, file: UploadedFile) -> AssetTypeHandler | None:
        return self.get(self.determine_type(file))

    def validate(self, file: UploadedFile) -> list[str]:
        handler = self.resolve(file)
        if handler is None:
            return []
        return handler.validate(file)

    def extract_metadata(self, file: UploadedFile) -> dict[str, Any]:
        handler = self.resolve(file)
        if handler is None:
            return base_metadata(file)
        return handler.extract_metadata(file)

    def get_max_file_size(self, type: str) -> int:
        handler = self.get(type)
        if handler is None:
            return self.default_max_file_size
        return handler.max_file_size

    def annotation_capabilities(self, type: str) -> AnnotationCapabilities:
        """Capabilities for a stored asset type; unknown types allow nothing."""
        handler = self.get(type)
        if handler is None:
            return AnnotationCapabilities()
        return handler.annotation_capabilities()

    def supports_spatial_annotations(self, type: str) -> bool:
        return self.annotation_capabilities(type).spatial

    def supports_temporal_annotations(self, type: str) -> bool:
        return self.annotation_capabilities(type).temporal

    def get_all_allowed_mime_types(self) -> list[str]:
        mimes: list[str] = []
        for handler in self._handlers.values():
            for mime in handler.allowed_mime_types:
                if mime not in mimes:
                    mimes.append(mime)
        return mimes

    def get_display_name(self, type: str) -> str:
        handler = self.get(type)
        if handler is None:
            return type[:1].upper() + type[1:]
        return handler.display_name

    def describe(self) -> list[dict[str, Any]]:
        return [h.describe() for h in self._handlers.values()]
