"""
Unit tests for the category reconciler.

Run: pytest tests/unit/test_category_reconciler.py -v
"""

import pytest

from services.category_reconciler import reconcile, reconcile_all
from models.menu import ExtractedCategory, MatchLayer
from exceptions import CategoryNotFoundError

from tests.factories import CategoryRowFactory


def _category(name: str) -> ExtractedCategory:
    return ExtractedCategory(name=name)


@pytest.fixture
def existing():
    return [
        CategoryRowFactory.existing("cat-starters", "Starters", 0),
        CategoryRowFactory.existing("cat-mains", "Main Dishes", 1),
        CategoryRowFactory.existing("cat-drink", "Drink", 2),
    ]


class TestReconcile:
    """Tests for reconcile()"""

    def test_exact_match_ignores_case_and_whitespace(self, existing):
        """Should match names equal after trimming and lowercasing."""
        result = reconcile(_category("  main   DISHES "), existing)

        assert result.matched
        assert result.target_category_id == "cat-mains"
        assert result.layer == MatchLayer.EXACT
        assert not result.should_create

    def test_trailing_s_match(self, existing):
        """Should match singular against plural."""
        result = reconcile(_category("Drinks"), existing)

        assert result.target_category_id == "cat-drink"
        assert result.layer == MatchLayer.PLURAL

    def test_singular_matches_existing_plural(self, existing):
        """Should match "starter" to existing "Starters"."""
        result = reconcile(_category("starter"), existing)

        assert result.target_category_id == "cat-starters"
        assert result.layer == MatchLayer.PLURAL

    def test_containment_within_length_guard(self):
        """Should match when one name contains the other and lengths are close."""
        existing = [CategoryRowFactory.existing("cat-soup", "Soup")]

        result = reconcile(_category("Soup Bar"), existing)

        assert result.target_category_id == "cat-soup"
        assert result.layer == MatchLayer.CONTAINMENT

    def test_containment_length_guard_rejects(self):
        """Should not match "Main" to "Main Course Specials" (length diff >= 5)."""
        existing = [CategoryRowFactory.existing("cat-1", "Main Course Specials")]

        result = reconcile(_category("Main"), existing)

        assert result.should_create
        assert not result.matched
        assert result.target_category_id is None

    def test_containment_length_diff_of_exactly_five_rejected(self):
        """Should require the length difference to be strictly below 5."""
        existing = [CategoryRowFactory.existing("cat-1", "Tea")]

        assert reconcile(_category("Tea Time"), existing).matched is False

    def test_earlier_layer_wins_over_list_order(self):
        """Should prefer an exact match even if a plural match comes first."""
        existing = [
            CategoryRowFactory.existing("cat-plural", "Dessert"),
            CategoryRowFactory.existing("cat-exact", "Desserts"),
        ]

        result = reconcile(_category("Desserts"), existing)

        assert result.target_category_id == "cat-exact"
        assert result.layer == MatchLayer.EXACT

    def test_no_match_creates(self, existing):
        """Should mark unknown categories for creation."""
        result = reconcile(_category("Pizza"), existing)

        assert result.should_create

    def test_empty_snapshot_creates(self):
        """Should create when there are no existing categories."""
        assert reconcile(_category("Starters"), []).should_create

    def test_blank_name_never_matches(self, existing):
        """Should not match a blank extracted name by containment."""
        assert reconcile(_category("  "), existing).should_create


class TestReconcileAll:
    """Tests for reconcile_all()"""

    def test_keeps_extraction_order(self, existing):
        """Should return one result per category in input order."""
        categories = [_category("Pizza"), _category("Starters"), _category("Drinks")]

        results = reconcile_all(categories, existing)

        assert [r.category.name for r in results] == ["Pizza", "Starters", "Drinks"]
        assert results[0].match.should_create
        assert results[1].match.target_category_id == "cat-starters"
        assert results[2].match.target_category_id == "cat-drink"

    def test_rerun_against_created_categories_matches_exactly(self):
        """Should match every category exactly once they exist."""
        names = ["Starters", "Grill", "Drinks"]
        existing = [CategoryRowFactory.existing(f"cat-{i}", n) for i, n in enumerate(names)]

        results = reconcile_all([_category(n) for n in names], existing)

        assert all(r.match.layer == MatchLayer.EXACT for r in results)

    def test_override_pins_every_category(self, existing):
        """Should send every category to the override, skipping matching."""
        categories = [_category("Pizza"), _category("Starters")]

        results = reconcile_all(categories, existing, override_category_id="cat-mains")

        assert all(r.match.target_category_id == "cat-mains" for r in results)
        assert all(r.match.layer == MatchLayer.OVERRIDE for r in results)
        assert not any(r.match.should_create for r in results)

    def test_override_must_exist(self, existing):
        """Should reject an override outside the snapshot."""
        with pytest.raises(CategoryNotFoundError) as exc_info:
            reconcile_all([_category("Pizza")], existing, override_category_id="cat-other")

        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "CATEGORY_NOT_FOUND"
