"""
Menu import service.

Writes reconciled categories and their items to the catalog, one category
at a time. There is no rollback: when a write fails the run stops, the
writes already made stay, and the error carries the partial outcome.
"""

from typing import Optional
import structlog

from models.menu import (
    ExistingCategory,
    ExtractedMenuData,
    ReconciledCategory,
    SourceDocument,
)
from models.import_session import (
    CategoryImportResult,
    ImportOutcome,
    ImportStatus,
)
from exceptions import (
    DatabaseError,
    CategoryCreationFailedError,
    ItemInsertFailedError,
)
from services.catalog_service import CatalogService, get_catalog_service
from services.category_reconciler import reconcile
from services.import_history_service import ImportHistoryService, get_import_history_service

logger = structlog.get_logger(__name__)


class MenuImportService:
    """
    Commits reconciled menu data.

    Categories are processed sequentially in extraction order so that each
    new category's display order is read after the previous one was written.
    """

    def __init__(
        self,
        catalog: Optional[CatalogService] = None,
        history: Optional[ImportHistoryService] = None
    ):
        self.catalog = catalog or get_catalog_service()
        self.history = history or get_import_history_service()

    def commit(
        self,
        reconciled: list[ReconciledCategory],
        restaurant_id: str,
        menu_group_id: str,
        document: Optional[SourceDocument] = None,
        extracted_data: Optional[ExtractedMenuData] = None,
        category_override_id: Optional[str] = None,
    ) -> ImportOutcome:
        """
        Create missing categories and insert every item.

        Args:
            reconciled: Categories with their match results, in extraction order
            restaurant_id: Owning restaurant
            menu_group_id: Menu group receiving new categories
            document: Source document, for the audit record
            extracted_data: Data being imported, for the audit record
            category_override_id: Pinned category, for the audit record

        Returns:
            ImportOutcome with status completed

        Raises:
            CategoryCreationFailedError: A category could not be created
            ItemInsertFailedError: A category's items could not be inserted
        """
        logger.info(
            "menu_import_started",
            restaurant_id=restaurant_id,
            menu_group_id=menu_group_id,
            categories=len(reconciled),
            items=sum(len(r.category.items) for r in reconciled)
        )

        outcome = ImportOutcome()
        try:
            self._run(reconciled, restaurant_id, menu_group_id, outcome)
        except (CategoryCreationFailedError, ItemInsertFailedError) as e:
            logger.error(
                "menu_import_stopped",
                restaurant_id=restaurant_id,
                failed_category=e.category_name,
                status=outcome.status.value,
                items_imported=outcome.items_imported,
                categories_created=outcome.categories_created
            )
            self._record(restaurant_id, menu_group_id, document, outcome, extracted_data, category_override_id)
            raise

        logger.info(
            "menu_import_completed",
            restaurant_id=restaurant_id,
            items_imported=outcome.items_imported,
            categories_created=outcome.categories_created,
            categories_matched=outcome.categories_matched
        )
        self._record(restaurant_id, menu_group_id, document, outcome, extracted_data, category_override_id)
        return outcome

    def _run(
        self,
        reconciled: list[ReconciledCategory],
        restaurant_id: str,
        menu_group_id: str,
        outcome: ImportOutcome,
    ) -> None:
        created_in_run: list[ExistingCategory] = []
        created_ids: set[str] = set()
        matched_ids: set[str] = set()

        for entry in reconciled:
            category = entry.category
            name = category.name.strip()
            created = False
            layer = entry.match.layer

            if entry.match.should_create:
                # "Starters" and "starter" in one document make one category
                earlier = reconcile(category, created_in_run)
                if earlier.matched:
                    target_id = earlier.target_category_id
                    layer = earlier.layer
                else:
                    try:
                        new_category = self.catalog.create_category(
                            restaurant_id=restaurant_id,
                            menu_group_id=menu_group_id,
                            name=name,
                            description=category.description
                        )
                    except DatabaseError as e:
                        self._fail(outcome, name, e.message)
                        raise CategoryCreationFailedError(
                            category_name=name,
                            reason=e.message,
                            outcome=outcome.model_dump(mode="json")
                        )
                    created_in_run.append(new_category)
                    created_ids.add(new_category.id)
                    target_id = new_category.id
                    created = True
                    outcome.categories_created = len(created_ids)
            else:
                target_id = entry.match.target_category_id

            try:
                inserted = self.catalog.bulk_insert_items(
                    restaurant_id=restaurant_id,
                    category_id=target_id,
                    items=category.items
                )
            except DatabaseError as e:
                self._fail(outcome, name, e.message)
                raise ItemInsertFailedError(
                    category_name=name,
                    reason=e.message,
                    item_count=len(category.items),
                    outcome=outcome.model_dump(mode="json")
                )

            if not entry.match.should_create:
                # Counted once its items are in
                matched_ids.add(target_id)
                outcome.categories_matched = len(matched_ids)
            outcome.items_imported += inserted
            outcome.results.append(CategoryImportResult(
                category_name=name,
                target_category_id=target_id,
                created=created,
                layer=layer,
                items_imported=inserted
            ))

    @staticmethod
    def _fail(outcome: ImportOutcome, category_name: str, error: str) -> None:
        outcome.status = ImportStatus.PARTIAL if outcome.has_writes else ImportStatus.FAILED
        outcome.failed_category = category_name
        outcome.error = error

    def _record(
        self,
        restaurant_id: str,
        menu_group_id: str,
        document: Optional[SourceDocument],
        outcome: ImportOutcome,
        extracted_data: Optional[ExtractedMenuData],
        category_override_id: Optional[str],
    ) -> None:
        self.history.record_import(
            restaurant_id=restaurant_id,
            menu_group_id=menu_group_id,
            document=document,
            outcome=outcome,
            extracted_data=extracted_data,
            category_override_id=category_override_id
        )


# Singleton instance
_import_service: Optional[MenuImportService] = None


def get_menu_import_service() -> MenuImportService:
    """Get or create MenuImportService instance."""
    global _import_service
    if _import_service is None:
        _import_service = MenuImportService()
    return _import_service
