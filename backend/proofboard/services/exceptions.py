"""Review domain specific exceptions."""
from datetime import datetime


class ReviewError(Exception):
    """Base class for review domain errors."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message

    def to_detail(self):
        return self.message


class NotFoundError(ReviewError):
    """Raised when the requested asset, version, comment or project is missing."""

    status_code = 404


class PermissionDeniedError(ReviewError):
    """Raised when a policy check rejects the acting user."""

    status_code = 403


class FileValidationError(ReviewError):
    """Raised when an upload fails its handler's validation rules."""

    status_code = 422

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors

    def to_detail(self):
        return {"file": self.errors}


class ForbiddenOperationError(ReviewError):
    """Raised when an operation is illegal in the asset's current state."""

    status_code = 403


class AssetLockedError(ForbiddenOperationError):
    """Raised when a new version is uploaded to a locked asset."""

    def __init__(self, locked_by: str | None = None, locked_at: datetime | None = None):
        super().__init__("Cannot upload new version. Asset is locked.")
        self.locked_by = locked_by
        self.locked_at = locked_at

    def to_detail(self):
        return {
            "message": self.message,
            "locked_by": self.locked_by,
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
        }


class AnnotationNotSupportedError(ForbiddenOperationError):
    """Raised when a comment anchor is not legal for the asset's type."""


class InvalidStateError(ForbiddenOperationError):
    """Raised for lock/status/threading requests that do not fit the current state."""

    status_code = 422


class InvalidAnnotationError(ReviewError):
    """Raised when an annotation the asset type allows is malformed or out of range."""

    status_code = 422
