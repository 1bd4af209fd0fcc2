"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Format detection
    UnsupportedFormatError,
    FileTooLargeError,

    # Extraction
    ExtractionFailedError,
    MalformedProviderResponseError,

    # Validation
    ImportValidationError,

    # Commit
    CategoryCreationFailedError,
    ItemInsertFailedError,

    # Session
    SessionNotFoundError,
    CategoryNotFoundError,
    InvalidStageTransitionError,
    SessionIncompleteError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Format detection
    "UnsupportedFormatError",
    "FileTooLargeError",

    # Extraction
    "ExtractionFailedError",
    "MalformedProviderResponseError",

    # Validation
    "ImportValidationError",

    # Commit
    "CategoryCreationFailedError",
    "ItemInsertFailedError",

    # Session
    "SessionNotFoundError",
    "CategoryNotFoundError",
    "InvalidStageTransitionError",
    "SessionIncompleteError",
]
