"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    FrozenSchema,
)
from models.menu import (
    DocumentKind,
    SourceDocument,
    ExtractedItem,
    ExtractedCategory,
    ExtractedMenuData,
    ExistingCategory,
    MatchLayer,
    CategoryMatchResult,
    ReconciledCategory,
    IssueSeverity,
    ValidationIssue,
    SUPPORTED_FILE_TYPES,
)
from models.import_session import (
    ImportStage,
    STAGE_TRANSITIONS,
    is_valid_stage_transition,
    ImportStatus,
    CategoryImportResult,
    ImportOutcome,
    ImportSession,
    BeginSessionRequest,
    ConfigureSessionRequest,
    ConfirmImportRequest,
    DocumentSummary,
    ImportSessionResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",

    # Menu
    "DocumentKind",
    "SourceDocument",
    "ExtractedItem",
    "ExtractedCategory",
    "ExtractedMenuData",
    "ExistingCategory",
    "MatchLayer",
    "CategoryMatchResult",
    "ReconciledCategory",
    "IssueSeverity",
    "ValidationIssue",
    "SUPPORTED_FILE_TYPES",

    # Import session
    "ImportStage",
    "STAGE_TRANSITIONS",
    "is_valid_stage_transition",
    "ImportStatus",
    "CategoryImportResult",
    "ImportOutcome",
    "ImportSession",
    "BeginSessionRequest",
    "ConfigureSessionRequest",
    "ConfirmImportRequest",
    "DocumentSummary",
    "ImportSessionResponse",
]
