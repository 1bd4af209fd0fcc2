"""
Menu import models.

Source documents, extracted menu data, and the catalog-side categories
that extraction output is reconciled against.
"""

from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field, model_validator

from models.base import BaseSchema, FrozenSchema


class DocumentKind(str, Enum):
    """Supported source document kinds."""
    IMAGE = "image"
    PDF = "pdf"
    SPREADSHEET_CSV = "spreadsheet_csv"
    SPREADSHEET_EXCEL = "spreadsheet_excel"


class SourceDocument(FrozenSchema):
    """Raw uploaded document. Never modified after selection."""

    file_name: str = Field(description="Original file name")
    media_type: str = Field(default="", description="Declared media (MIME) type")
    content: bytes = Field(repr=False, description="Raw document bytes")

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        """Lowercase extension including the dot, or empty string."""
        if "." not in self.file_name:
            return ""
        return "." + self.file_name.rsplit(".", 1)[-1].lower()


# ===================
# EXTRACTION OUTPUT
# ===================

class ExtractedItem(FrozenSchema):
    """
    Single menu item as produced by an extraction provider.

    Name and price are deliberately unconstrained here: providers are not
    trusted, and the validator reports empty names and negative prices.
    """

    name: str = ""
    description: Optional[str] = None
    price: float = 0.0
    image_url: Optional[str] = Field(None, description="Generated or extracted image reference")


class ExtractedCategory(FrozenSchema):
    """Category with its items, in the order they appear in the document."""

    name: str = ""
    description: Optional[str] = None
    items: list[ExtractedItem] = Field(default_factory=list)


class ExtractedMenuData(FrozenSchema):
    """Structured result of one extraction run."""

    categories: list[ExtractedCategory] = Field(default_factory=list)
    restaurant_name: Optional[str] = None
    currency: Optional[str] = None
    raw_text: Optional[str] = Field(None, description="Text the structure was built from, for review")
    provider: Optional[str] = Field(None, description="Provider that produced this data")

    @property
    def total_items(self) -> int:
        return sum(len(c.items) for c in self.categories)


# ===================
# CATALOG
# ===================

class ExistingCategory(BaseSchema):
    """Category already in the operator's catalog. Read-only input."""

    id: str
    name: str
    menu_group_id: Optional[str] = None
    display_order: Optional[int] = None


class MatchLayer(str, Enum):
    """Which reconciliation layer produced a match."""
    EXACT = "exact"
    PLURAL = "plural"
    CONTAINMENT = "containment"
    OVERRIDE = "override"


class CategoryMatchResult(BaseModel):
    """
    Outcome of reconciling one extracted category.

    Exactly one of `matched` / `should_create` is true.
    """

    matched: bool
    target_category_id: Optional[str] = None
    should_create: bool = False
    layer: Optional[MatchLayer] = None
    matched_name: Optional[str] = Field(None, description="Name of the existing category that matched")

    @model_validator(mode="after")
    def check_exclusive(self) -> "CategoryMatchResult":
        if self.matched == self.should_create:
            raise ValueError("exactly one of matched / should_create must be true")
        if self.matched and not self.target_category_id:
            raise ValueError("a match requires target_category_id")
        if self.should_create and self.target_category_id:
            raise ValueError("a create result cannot carry target_category_id")
        return self

    @classmethod
    def match(
        cls,
        category: ExistingCategory,
        layer: MatchLayer
    ) -> "CategoryMatchResult":
        return cls(
            matched=True,
            target_category_id=category.id,
            layer=layer,
            matched_name=category.name
        )

    @classmethod
    def create(cls) -> "CategoryMatchResult":
        return cls(matched=False, should_create=True)


class ReconciledCategory(BaseModel):
    """Extracted category paired with its reconciliation result."""

    category: ExtractedCategory
    match: CategoryMatchResult


# ===================
# VALIDATION
# ===================

class IssueSeverity(str, Enum):
    """Validation issue severity. Only ERROR blocks the import."""
    WARNING = "warning"
    ERROR = "error"


class ValidationIssue(BaseModel):
    """Single finding from the menu validator."""

    severity: IssueSeverity
    message: str
    category: Optional[str] = Field(None, description="Category the issue belongs to")
    item: Optional[str] = Field(None, description="Item the issue belongs to")


# Supported upload types, shown to callers before they pick a file
SUPPORTED_FILE_TYPES: dict[str, list[str]] = {
    "images": [".jpg", ".jpeg", ".png", ".webp", ".gif"],
    "pdfs": [".pdf"],
    "spreadsheets": [".csv", ".xlsx", ".xls"],
}
