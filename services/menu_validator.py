"""
Menu validator.

Checks extracted menu data before it can be previewed or committed.
Errors block the import; warnings are shown to the operator and nothing
more.
"""

import math
from typing import Optional

import structlog

from models.menu import ExtractedMenuData, IssueSeverity, ValidationIssue

logger = structlog.get_logger(__name__)


def _error(message: str, category: Optional[str] = None, item: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(severity=IssueSeverity.ERROR, message=message, category=category, item=item)


def _warning(message: str, category: Optional[str] = None, item: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(severity=IssueSeverity.WARNING, message=message, category=category, item=item)


def validate(data: ExtractedMenuData) -> list[ValidationIssue]:
    """
    Validate extracted menu data.

    Rules:
        - category with an empty name: error
        - category with no items: warning
        - item with an empty name: error
        - item with a NaN or infinite price: error
        - item with a negative price: error
        - item priced exactly 0: warning (usually a price the provider missed)
        - no items in the whole menu: error

    Empty descriptions are fine.

    Args:
        data: Extracted menu data

    Returns:
        Issues in document order (empty list when the menu is clean)
    """
    issues: list[ValidationIssue] = []

    for index, category in enumerate(data.categories, start=1):
        category_name = category.name.strip()
        label = category_name or f"Category {index}"

        if not category_name:
            issues.append(_error(f"Category {index} has no name", category=label))

        if not category.items:
            issues.append(_warning(f'Category "{label}" has no items', category=label))
            continue

        for position, item in enumerate(category.items, start=1):
            item_name = item.name.strip()
            item_label = item_name or f"Item {position}"

            if not item_name:
                issues.append(_error(
                    f'Item {position} in "{label}" has no name',
                    category=label,
                    item=item_label
                ))

            if not math.isfinite(item.price):
                issues.append(_error(
                    f'"{item_label}" has an invalid price ({item.price})',
                    category=label,
                    item=item_label
                ))
            elif item.price < 0:
                issues.append(_error(
                    f'"{item_label}" has a negative price ({item.price:g})',
                    category=label,
                    item=item_label
                ))
            elif item.price == 0:
                issues.append(_warning(
                    f'"{item_label}" has no price',
                    category=label,
                    item=item_label
                ))

    if data.total_items == 0:
        issues.append(_error("No menu items were found in the document"))

    if issues:
        logger.info(
            "menu_validation_issues",
            errors=sum(1 for i in issues if i.severity == IssueSeverity.ERROR),
            warnings=sum(1 for i in issues if i.severity == IssueSeverity.WARNING)
        )

    return issues


def has_blocking_errors(issues: list[ValidationIssue]) -> bool:
    """True when at least one issue is an error."""
    return any(issue.severity == IssueSeverity.ERROR for issue in issues)
