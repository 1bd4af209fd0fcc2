"""
Spreadsheet parsers module.
"""

from parsers.spreadsheet_parser import (
    parse_menu_spreadsheet,
    spreadsheet_to_text,
    SpreadsheetParseResult,
)

__all__ = [
    "parse_menu_spreadsheet",
    "spreadsheet_to_text",
    "SpreadsheetParseResult",
]
