"""
Custom exception classes for the application.

Every fatal import error carries the stage it happened in plus the
category/item it concerns, so the presentation layer can show it as-is.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "CATEGORY_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with the current state of a resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (502)."""

    def __init__(
        self,
        service: str,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=502,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# FORMAT DETECTION ERRORS
# ===================

class UnsupportedFormatError(AppError):
    """Document type is not on the whitelist, or its content does not match."""

    def __init__(
        self,
        file_name: str,
        media_type: Optional[str],
        reason: str = "Unsupported file type. Upload an image, PDF, CSV or Excel file."
    ):
        super().__init__(
            code="UNSUPPORTED_FORMAT",
            message=reason,
            status_code=415,
            details={
                "stage": "upload",
                "file_name": file_name,
                "media_type": media_type,
            }
        )


class FileTooLargeError(AppError):
    """Document exceeds the configured upload limit."""

    def __init__(self, file_name: str, size: int, limit: int):
        super().__init__(
            code="FILE_TOO_LARGE",
            message=f"File size exceeds {limit // (1024 * 1024)}MB limit",
            status_code=413,
            details={
                "stage": "upload",
                "file_name": file_name,
                "size": size,
                "limit": limit,
            }
        )


# ===================
# EXTRACTION ERRORS
# ===================

class ExtractionFailedError(ExternalServiceError):
    """Provider could not turn the document into menu data."""

    def __init__(self, provider: str, message: str, details: Optional[dict] = None):
        super().__init__(
            service=provider,
            message=message,
            code="EXTRACTION_FAILED",
            details={"stage": "upload", **(details or {})}
        )


class MalformedProviderResponseError(ExternalServiceError):
    """Provider answered, but the payload is not valid menu data."""

    def __init__(self, provider: str, message: str, details: Optional[dict] = None):
        super().__init__(
            service=provider,
            message=message,
            code="MALFORMED_PROVIDER_RESPONSE",
            details={"stage": "upload", **(details or {})}
        )


# ===================
# VALIDATION ERRORS
# ===================

class ImportValidationError(ValidationError):
    """Extracted menu has error-severity issues that block the import."""

    def __init__(self, issues: list[dict], stage: str = "upload"):
        super().__init__(
            code="IMPORT_VALIDATION_FAILED",
            message=f"Menu data has {len(issues)} blocking issue(s)",
            details={"stage": stage, "issues": issues}
        )


# ===================
# COMMIT ERRORS
# ===================

class CategoryCreationFailedError(AppError):
    """Creating a missing category failed mid-import. Earlier writes are kept."""

    def __init__(self, category_name: str, reason: str, outcome: Optional[dict] = None):
        super().__init__(
            code="CATEGORY_CREATION_FAILED",
            message=f"Could not create category '{category_name}': {reason}",
            status_code=500,
            details={
                "stage": "importing",
                "category": category_name,
                "outcome": outcome,
            }
        )
        self.category_name = category_name
        self.outcome = outcome


class ItemInsertFailedError(AppError):
    """Inserting a category's items failed mid-import. Earlier writes are kept."""

    def __init__(
        self,
        category_name: str,
        reason: str,
        item_count: int,
        outcome: Optional[dict] = None
    ):
        super().__init__(
            code="ITEM_INSERT_FAILED",
            message=f"Could not import {item_count} item(s) for category '{category_name}': {reason}",
            status_code=500,
            details={
                "stage": "importing",
                "category": category_name,
                "item_count": item_count,
                "outcome": outcome,
            }
        )
        self.category_name = category_name
        self.outcome = outcome


# ===================
# SESSION ERRORS
# ===================

class SessionNotFoundError(NotFoundError):
    """Import session expired or never existed."""

    def __init__(self, session_id: str):
        super().__init__(
            resource="Import session",
            identifier=session_id,
            code="IMPORT_SESSION_NOT_FOUND"
        )


class CategoryNotFoundError(NotFoundError):
    """Category override does not belong to the selected menu group."""

    def __init__(self, category_id: str):
        super().__init__(
            resource="Category",
            identifier=category_id,
            code="CATEGORY_NOT_FOUND"
        )


class InvalidStageTransitionError(ConflictError):
    """Action is not allowed in the session's current stage."""

    def __init__(self, current_stage: str, new_stage: str, action: Optional[str] = None):
        super().__init__(
            code="INVALID_STAGE_TRANSITION",
            message=f"Cannot transition from {current_stage} to {new_stage}",
            details={
                "stage": current_stage,
                "current_stage": current_stage,
                "new_stage": new_stage,
                "action": action,
            }
        )


class SessionIncompleteError(ValidationError):
    """A required session selection is missing."""

    def __init__(self, missing: str, stage: str):
        super().__init__(
            code="IMPORT_SESSION_INCOMPLETE",
            message=f"Select a {missing.replace('_', ' ')} first",
            details={"stage": stage, "missing": missing}
        )
