"""
Import session schemas.

Stages of the user-driven import flow, the session aggregate, the import
outcome, and the request/response bodies of the import API.
"""

from typing import Optional
from enum import Enum
from datetime import datetime
from uuid import uuid4
from pydantic import BaseModel, Field

from models.base import BaseSchema
from models.menu import (
    DocumentKind,
    SourceDocument,
    ExtractedMenuData,
    ExistingCategory,
    MatchLayer,
    ValidationIssue,
    IssueSeverity,
)


class ImportStage(str, Enum):
    """User-visible stages of one import session."""
    SETUP = "setup"
    UPLOAD = "upload"
    PREVIEW = "preview"
    IMPORTING = "importing"
    COMPLETE = "complete"


# Forward transitions only; reset to SETUP is allowed from every stage
STAGE_TRANSITIONS: dict[ImportStage, set[ImportStage]] = {
    ImportStage.SETUP: {ImportStage.UPLOAD},
    ImportStage.UPLOAD: {ImportStage.PREVIEW},
    ImportStage.PREVIEW: {ImportStage.IMPORTING},
    ImportStage.IMPORTING: {ImportStage.COMPLETE, ImportStage.PREVIEW},
    ImportStage.COMPLETE: set(),
}


def is_valid_stage_transition(current: ImportStage, new: ImportStage) -> bool:
    """
    Check if a stage transition is valid.

    Rules:
    - setup -> upload -> preview -> importing -> complete
    - importing can fail back to preview
    - any stage can reset to setup
    - complete is terminal apart from reset
    """
    if new == ImportStage.SETUP:
        return True
    return new in STAGE_TRANSITIONS[current]


# ===================
# IMPORT OUTCOME
# ===================

class ImportStatus(str, Enum):
    """Overall result of a commit run."""
    COMPLETED = "completed"
    PARTIAL = "partial"    # stopped mid-run after some writes succeeded
    FAILED = "failed"      # stopped before anything was written


class CategoryImportResult(BaseModel):
    """What happened to one extracted category during commit."""

    category_name: str
    target_category_id: str
    created: bool
    layer: Optional[MatchLayer] = None
    items_imported: int = 0


class ImportOutcome(BaseModel):
    """
    Auditable result of a commit run.

    Counts cover only what was actually written; on failure the writes made
    before the failing category are still reflected here.
    """

    status: ImportStatus = ImportStatus.COMPLETED
    items_imported: int = 0
    categories_created: int = 0
    categories_matched: int = 0
    results: list[CategoryImportResult] = Field(default_factory=list)
    failed_category: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_writes(self) -> bool:
        return self.items_imported > 0 or self.categories_created > 0


# ===================
# SESSION AGGREGATE
# ===================

class ImportSession(BaseModel):
    """
    State of one interactive import run.

    Owned by exactly one caller; destroyed on reset-and-abandon or expiry.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    stage: ImportStage = ImportStage.SETUP
    restaurant_id: str
    menu_group_id: Optional[str] = None
    category_override_id: Optional[str] = None

    document: Optional[SourceDocument] = None
    document_kind: Optional[DocumentKind] = None
    extracted_data: Optional[ExtractedMenuData] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    # Catalog view taken when the session left setup
    existing_categories: list[ExistingCategory] = Field(default_factory=list)

    outcome: Optional[ImportOutcome] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ===================
# API REQUESTS
# ===================

class BeginSessionRequest(BaseSchema):
    """Start an import for a restaurant."""

    restaurant_id: str = Field(..., min_length=1, description="Restaurant UUID")
    menu_group_id: Optional[str] = Field(None, description="Menu group UUID, can be chosen later")


class ConfigureSessionRequest(BaseSchema):
    """Pick the target menu group (and optionally pin one category)."""

    menu_group_id: str = Field(..., min_length=1, description="Menu group UUID")
    category_override_id: Optional[str] = Field(
        None,
        description="Existing category that receives every item, bypassing reconciliation"
    )


class ConfirmImportRequest(BaseSchema):
    """User confirmation after reviewing the preview."""

    category_override_id: Optional[str] = Field(
        None,
        description="Overrides the category pinned at setup"
    )
    edited_data: Optional[ExtractedMenuData] = Field(
        None,
        description="Reviewed/edited menu data; re-validated before import"
    )


# ===================
# API RESPONSES
# ===================

class DocumentSummary(BaseModel):
    """Selected document without its bytes."""

    file_name: str
    media_type: str
    kind: Optional[DocumentKind] = None
    size: int


class ImportSessionResponse(BaseModel):
    """Session state returned to the presentation layer."""

    id: str
    stage: ImportStage
    restaurant_id: str
    menu_group_id: Optional[str] = None
    category_override_id: Optional[str] = None
    document: Optional[DocumentSummary] = None
    extracted_data: Optional[ExtractedMenuData] = None
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings_count: int = 0
    errors_count: int = 0
    existing_categories: list[ExistingCategory] = Field(default_factory=list)
    outcome: Optional[ImportOutcome] = None

    @classmethod
    def from_session(cls, session: ImportSession) -> "ImportSessionResponse":
        document = None
        if session.document is not None:
            document = DocumentSummary(
                file_name=session.document.file_name,
                media_type=session.document.media_type,
                kind=session.document_kind,
                size=session.document.size,
            )
        return cls(
            id=session.id,
            stage=session.stage,
            restaurant_id=session.restaurant_id,
            menu_group_id=session.menu_group_id,
            category_override_id=session.category_override_id,
            document=document,
            extracted_data=session.extracted_data,
            issues=session.issues,
            warnings_count=sum(1 for i in session.issues if i.severity == IssueSeverity.WARNING),
            errors_count=sum(1 for i in session.issues if i.severity == IssueSeverity.ERROR),
            existing_categories=session.existing_categories,
            outcome=session.outcome,
        )
