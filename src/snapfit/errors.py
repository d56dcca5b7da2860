"""
Error classification for the snapfit service.

Every failure a handler can report is a SnapFitError subclass carrying the
HTTP status it maps to. The API layer turns them into a uniform
``{"error": ..., "success": false}`` body.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from .logging_config import get_logger, log_error, log_security_event

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Error categories for classification and handling."""

    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    STORAGE = "storage"
    METADATA = "metadata"
    IMAGE_PROCESSING = "image_processing"
    VISION = "vision"
    UNKNOWN = "unknown"


class SnapFitError(Exception):
    """Base exception class for the snapfit service."""

    status_code = 500

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.code = code or f"{category.value}_error"
        self.details = details or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now()

        self._log_error()

    def _log_error(self) -> None:
        """Log the error with a level matching who is at fault."""
        error_context = {
            "category": self.category.value,
            "code": self.code,
            "status_code": self.status_code,
            **self.details,
        }

        if self.original_exception:
            error_context["original_exception"] = str(self.original_exception)

        if self.category is ErrorCategory.AUTHORIZATION:
            log_security_event(self.category.value, **error_context)
        elif self.status_code >= 500:
            log_error(self, error_context)
        else:
            logger.info("client_error", message=self.message, **error_context)

    def to_dict(self) -> dict[str, Any]:
        """Response body for this error."""
        return {"error": self.message, "code": self.code, "success": False}


class InvalidInputError(SnapFitError):
    """Missing or malformed request fields."""

    status_code = 400

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message, category=ErrorCategory.VALIDATION, code=code or "invalid_input", details=details)


class UnauthorizedError(SnapFitError):
    """The stored record belongs to someone other than the caller."""

    status_code = 403

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(message, category=ErrorCategory.AUTHORIZATION, code="ownership_mismatch", details=details)


class PhotoNotFoundError(SnapFitError):
    """No metadata or blob exists for the requested key."""

    status_code = 404

    def __init__(self, message: str = "Photo not found", details: dict[str, Any] | None = None):
        super().__init__(message, category=ErrorCategory.NOT_FOUND, code="photo_not_found", details=details)


class RateLimitedError(SnapFitError):
    """The caller's token bucket is empty."""

    status_code = 429

    def __init__(self, message: str = "Too many requests", retry_after: float | None = None, details=None):
        self.retry_after = retry_after
        super().__init__(message, category=ErrorCategory.RATE_LIMIT, code="rate_limited", details=details)


class UpstreamError(SnapFitError):
    """A collaborator (blob store, cache, transform, vision model) failed."""

    status_code = 500

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(
            message,
            category=category,
            code=code or "upstream_failure",
            details=details,
            original_exception=original_exception,
        )


class StorageError(UpstreamError):
    """Blob store failures."""

    def __init__(self, message: str, code: str | None = None, details=None, original_exception=None):
        super().__init__(
            message,
            category=ErrorCategory.STORAGE,
            code=code or "storage_error",
            details=details,
            original_exception=original_exception,
        )


class MetadataError(UpstreamError):
    """Metadata cache failures."""

    def __init__(self, message: str, code: str | None = None, details=None, original_exception=None):
        super().__init__(
            message,
            category=ErrorCategory.METADATA,
            code=code or "metadata_error",
            details=details,
            original_exception=original_exception,
        )


class ImageProcessingError(UpstreamError):
    """Image transform failures on an image that passed validation."""

    def __init__(self, message: str, code: str | None = None, details=None, original_exception=None):
        super().__init__(
            message,
            category=ErrorCategory.IMAGE_PROCESSING,
            code=code or "image_processing_failed",
            details=details,
            original_exception=original_exception,
        )


class VisionError(UpstreamError):
    """Vision model call failed or returned an unusable answer."""

    def __init__(self, message: str, code: str | None = None, details=None, original_exception=None):
        super().__init__(
            message,
            category=ErrorCategory.VISION,
            code=code or "vision_failed",
            details=details,
            original_exception=original_exception,
        )
