"""Asset type handler base class and shared descriptors."""
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any


@dataclass
class UploadedFile:
    """What the registry needs to know about an incoming file.

    `path` points at the staged bytes on disk (None when only the declared
    name/MIME/size are known, e.g. in tests or dry-run validation).
    """
    name: str
    mime_type: str | None
    size: int
    path: Path | None = None

    @property
    def extension(self) -> str:
        """Extension as the client sent it, without the leading dot."""
        return Path(self.name).suffix[1:]


@dataclass(frozen=True)
class AnnotationCapabilities:
    """Which comment anchors are legal for an asset type."""
    spatial: bool = False
    temporal: bool = False
    paged: bool = False

    def as_dict(self) -> dict[str, bool]:
        return asdict(self)


MB = 1024 * 1024


def mime_matches(pattern: str, mime_type: str | None) -> bool:
    """A pattern ending in '/' is a prefix match, anything else is exact."""
    if not mime_type:
        return False
    if pattern.endswith("/"):
        return mime_type.startswith(pattern)
    return mime_type == pattern


def is_prefix_pattern(pattern: str) -> bool:
    return pattern.endswith("/")


class AssetTypeHandler:
    """Capability descriptor for one asset type.

    Subclasses declare their identity and limits as class attributes and
    override the hooks whose default behaviour does not fit. None of the
    methods raise: problems are reported as data (error lists, missing
    metadata keys).
    """

    type: str = ""
    display_name: str = ""
    mime_patterns: tuple[str, ...] = ()
    extensions: tuple[str, ...] = ()
    max_file_size: int = 50 * MB
    supports_spatial_annotations: bool = False
    supports_temporal_annotations: bool = False
    supports_page_annotations: bool = False

    @property
    def allowed_mime_types(self) -> list[str]:
        """MIME types accepted by `validate`.

        Defaults to the exact (non-prefix) patterns. An empty list skips MIME
        validation entirely.
        """
        return [p for p in self.mime_patterns if not is_prefix_pattern(p)]

    @property
    def has_prefix_pattern(self) -> bool:
        return any(is_prefix_pattern(p) for p in self.mime_patterns)

    def supports(self, file: UploadedFile) -> bool:
        """Check MIME patterns first, then fall back to the extension."""
        if any(mime_matches(p, file.mime_type) for p in self.mime_patterns):
            return True
        return self.matches_extension(file)

    def matches_extension(self, file: UploadedFile) -> bool:
        return file.extension.lower() in self.extensions

    def validate(self, file: UploadedFile) -> list[str]:
        """Return validation errors; an empty list means the file is acceptable."""
        errors: list[str] = []

        if file.size > self.max_file_size:
            max_mb = round(self.max_file_size / MB, 1)
            errors.append(f"File size exceeds maximum allowed size of {max_mb:g} MB.")

        allowed = self.allowed_mime_types
        if allowed and file.mime_type not in allowed:
            errors.append("File type is not allowed for this asset type.")

        return errors

    def extract_metadata(self, file: UploadedFile) -> dict[str, Any]:
        return base_metadata(file)

    def annotation_capabilities(self) -> AnnotationCapabilities:
        return AnnotationCapabilities(
            spatial=self.supports_spatial_annotations,
            temporal=self.supports_temporal_annotations,
            paged=self.supports_page_annotations,
        )

    def describe(self) -> dict[str, Any]:
        """Public description consumed by the API and the front end."""
        return {
            "type": self.type,
            "display_name": self.display_name,
            "extensions": list(self.extensions),
            "allowed_mime_types": self.allowed_mime_types,
            "max_file_size": self.max_file_size,
            "capabilities": self.annotation_capabilities().as_dict(),
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} type={self.type!r}>"


def base_metadata(file: UploadedFile) -> dict[str, Any]:
    """Metadata every handler reports."""
    return {
        "original_name": file.name,
        "mime_type": file.mime_type,
        "extension": file.extension,
    }
