"""
Category reconciler.

Maps each extracted category onto an existing catalog category or marks it
for creation. Layers are tried in order, and each layer is tried against
every existing category before the next layer starts:

    1. exact        "Main  Dishes" == "main dishes"
    2. plural       "Starters" ~ "Starter" (one trailing "s" dropped on both sides)
    3. containment  "Soup" in "Soups & Salad"? only if lengths differ by < 5
    4. create
"""

from typing import Callable, Optional
import structlog

from exceptions import CategoryNotFoundError
from models.menu import (
    ExtractedCategory,
    ExistingCategory,
    CategoryMatchResult,
    MatchLayer,
    ReconciledCategory,
)
from utils.text_utils import normalize_name

logger = structlog.get_logger(__name__)


# Containment only counts when the names are this close in length
MAX_CONTAINMENT_LENGTH_DIFF = 5


def _strip_plural(name: str) -> str:
    return name[:-1] if name.endswith("s") else name


def _exact(a: str, b: str) -> bool:
    return a == b


def _plural(a: str, b: str) -> bool:
    return _strip_plural(a) == _strip_plural(b)


def _containment(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return (a in b or b in a) and abs(len(a) - len(b)) < MAX_CONTAINMENT_LENGTH_DIFF


LAYERS: list[tuple[MatchLayer, Callable[[str, str], bool]]] = [
    (MatchLayer.EXACT, _exact),
    (MatchLayer.PLURAL, _plural),
    (MatchLayer.CONTAINMENT, _containment),
]


def reconcile(
    category: ExtractedCategory,
    existing: list[ExistingCategory],
) -> CategoryMatchResult:
    """
    Reconcile one extracted category against the existing categories.

    First hit wins; within a layer, existing categories are tried in the
    order given.

    Args:
        category: Extracted category
        existing: Snapshot of the menu group's categories

    Returns:
        CategoryMatchResult (matched with a target id, or should_create)
    """
    name = normalize_name(category.name)
    candidates = [(normalize_name(c.name), c) for c in existing]

    if name:
        for layer, matches in LAYERS:
            for candidate_name, candidate in candidates:
                if candidate_name and matches(name, candidate_name):
                    logger.debug(
                        "category_matched",
                        category=category.name,
                        matched=candidate.name,
                        layer=layer.value
                    )
                    return CategoryMatchResult.match(candidate, layer)

    logger.debug("category_unmatched", category=category.name)
    return CategoryMatchResult.create()


def reconcile_all(
    categories: list[ExtractedCategory],
    existing: list[ExistingCategory],
    override_category_id: Optional[str] = None,
) -> list[ReconciledCategory]:
    """
    Reconcile every extracted category, keeping extraction order.

    With an override, every category resolves to that one existing category
    and name matching is skipped.

    Raises:
        CategoryNotFoundError: If the override is not one of the existing categories
    """
    if override_category_id:
        target = next((c for c in existing if c.id == override_category_id), None)
        if target is None:
            raise CategoryNotFoundError(override_category_id)
        result = CategoryMatchResult.match(target, MatchLayer.OVERRIDE)
        reconciled = [ReconciledCategory(category=c, match=result) for c in categories]
    else:
        reconciled = [
            ReconciledCategory(category=c, match=reconcile(c, existing))
            for c in categories
        ]

    logger.info(
        "categories_reconciled",
        total=len(reconciled),
        matched=sum(1 for r in reconciled if r.match.matched),
        to_create=sum(1 for r in reconciled if r.match.should_create),
        override=bool(override_category_id)
    )
    return reconciled
