"""
Spreadsheet parser for menu exports (CSV and Excel).

Reads one row per menu item. Column names are matched loosely so exports
from POS systems and hand-made sheets both work:

    Category | Item      | Description        | Price
    Starters | Samosa    | Beef, 3 pieces     | 2,500
    Starters | Spring roll |                  | 2000

A category column is optional. Without one, each Excel sheet becomes a
category (workbooks with several sheets) or everything lands in
DEFAULT_CATEGORY.
"""

from dataclasses import dataclass, field
from io import BytesIO
from typing import Optional
import structlog

import pandas as pd

from models.menu import DocumentKind, ExtractedCategory, ExtractedItem
from exceptions import ExtractionFailedError
from utils.text_utils import clean_text, parse_price

logger = structlog.get_logger(__name__)


DEFAULT_CATEGORY = "Menu Items"

# Legacy .xls workbooks are OLE2 compound files; .xlsx are zip archives
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0"

# Normalized header -> canonical column
COLUMN_ALIASES: dict[str, str] = {
    "category": "category",
    "category_name": "category",
    "section": "category",
    "group": "category",
    "categoria": "category",
    "categorie": "category",
    "name": "name",
    "item": "name",
    "item_name": "name",
    "dish": "name",
    "product": "name",
    "product_name": "name",
    "nombre": "name",
    "nom": "name",
    "plat": "name",
    "description": "description",
    "desc": "description",
    "details": "description",
    "descripcion": "description",
    "price": "price",
    "base_price": "price",
    "unit_price": "price",
    "amount": "price",
    "cost": "price",
    "precio": "price",
    "prix": "price",
    "image": "image_url",
    "image_url": "image_url",
    "photo": "image_url",
}

REQUIRED_COLUMNS = ["name", "price"]


@dataclass
class ParseError:
    """Single row-level problem found while parsing."""
    sheet: str
    row: int
    field: str
    error: str


@dataclass
class SpreadsheetParseResult:
    """Result of parsing a menu spreadsheet."""
    categories: list[ExtractedCategory] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)
    rows_read: int = 0

    @property
    def has_data(self) -> bool:
        """True if any item was parsed."""
        return any(c.items for c in self.categories)


def _normalize_column(col) -> str:
    """
    Normalize column name for consistent matching.

    "Item Name" -> "item_name"
    "Price (RWF)" -> "price"
    "Catégorie" -> "categorie"
    """
    col = str(col).lower().strip()
    if "(" in col:
        col = col.split("(", 1)[0].strip()
    col = col.replace(" ", "_").replace("-", "_")
    col = col.replace("á", "a").replace("é", "e").replace("í", "i")
    col = col.replace("ó", "o").replace("ú", "u")
    return COLUMN_ALIASES.get(col, col)


def _cell(row: pd.Series, column: str) -> Optional[str]:
    """Read a cell as text, None when missing or blank."""
    if column not in row.index:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def read_sheets(content: bytes, kind: DocumentKind) -> dict[str, pd.DataFrame]:
    """
    Load every sheet of the document as a DataFrame.

    CSV files yield a single sheet named "csv". The CSV delimiter is
    sniffed so semicolon-separated exports work too. Legacy .xls workbooks
    are read with xlrd, .xlsx with openpyxl.

    Raises:
        ExtractionFailedError: If the file cannot be read
    """
    try:
        if kind == DocumentKind.SPREADSHEET_CSV:
            df = pd.read_csv(BytesIO(content), sep=None, engine="python", dtype=str)
            return {"csv": df}
        if kind == DocumentKind.SPREADSHEET_EXCEL:
            engine = "xlrd" if content.startswith(OLE2_SIGNATURE) else "openpyxl"
            return pd.read_excel(BytesIO(content), sheet_name=None, dtype=str, engine=engine)
    except Exception as e:
        logger.error("spreadsheet_read_failed", kind=kind.value, error=str(e))
        raise ExtractionFailedError(
            provider="spreadsheet",
            message="Failed to read spreadsheet",
            details={"original_error": str(e)}
        )

    raise ExtractionFailedError(
        provider="spreadsheet",
        message=f"Not a spreadsheet document: {kind.value}"
    )


def parse_menu_spreadsheet(content: bytes, kind: DocumentKind) -> SpreadsheetParseResult:
    """
    Parse a CSV/Excel menu into categories.

    Args:
        content: Raw file bytes
        kind: SPREADSHEET_CSV or SPREADSHEET_EXCEL

    Returns:
        SpreadsheetParseResult with categories in first-appearance order

    Raises:
        ExtractionFailedError: If the file cannot be read or no sheet has
            the required columns
    """
    logger.info("parsing_menu_spreadsheet", kind=kind.value, size=len(content))

    sheets = read_sheets(content, kind)
    result = SpreadsheetParseResult()

    # Category name -> items, insertion ordered
    grouped: dict[str, list[ExtractedItem]] = {}
    display_names: dict[str, str] = {}
    usable_sheets = 0

    for sheet_name, df in sheets.items():
        df = df.copy()
        df.columns = [_normalize_column(col) for col in df.columns]

        missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
        if missing:
            result.errors.append(ParseError(
                sheet=sheet_name,
                row=0,
                field="columns",
                error=f"Missing required columns: {', '.join(missing)}"
            ))
            continue

        usable_sheets += 1
        if "category" in df.columns:
            fallback_category = DEFAULT_CATEGORY
        elif len(sheets) > 1:
            fallback_category = str(sheet_name).strip() or DEFAULT_CATEGORY
        else:
            fallback_category = DEFAULT_CATEGORY

        for idx, row in df.iterrows():
            row_num = idx + 2  # 1-indexed + header
            name = clean_text(_cell(row, "name"))
            raw_price = _cell(row, "price")

            # Skip fully empty rows
            if name is None and raw_price is None:
                continue

            result.rows_read += 1

            if raw_price is None:
                result.errors.append(ParseError(
                    sheet=sheet_name,
                    row=row_num,
                    field="price",
                    error="Price is empty"
                ))

            category = clean_text(_cell(row, "category")) or fallback_category
            key = category.casefold()
            display_names.setdefault(key, category)

            grouped.setdefault(key, []).append(ExtractedItem(
                name=name or "",
                description=clean_text(_cell(row, "description"), max_length=1000),
                price=parse_price(raw_price),
                image_url=_cell(row, "image_url"),
            ))

    if usable_sheets == 0:
        raise ExtractionFailedError(
            provider="spreadsheet",
            message="Spreadsheet needs at least a name and a price column",
            details={"errors": [e.error for e in result.errors]}
        )

    result.categories = [
        ExtractedCategory(name=display_names[key], items=items)
        for key, items in grouped.items()
    ]

    logger.info(
        "menu_spreadsheet_parsed",
        categories=len(result.categories),
        rows=result.rows_read,
        error_count=len(result.errors)
    )

    return result


def spreadsheet_to_text(content: bytes, kind: DocumentKind, max_rows: int = 2000) -> str:
    """
    Render a spreadsheet as CSV text, one block per sheet.

    Used to hand tabular menus to the vision model as plain text.
    """
    blocks = []
    for sheet_name, df in read_sheets(content, kind).items():
        df = df.dropna(how="all").head(max_rows)
        blocks.append(f"# Sheet: {sheet_name}\n{df.to_csv(index=False)}")
    return "\n".join(blocks).strip()
