"""
Catalog service for menu categories and items.

Reads the operator's categories and writes imported categories/items to
the Supabase `categories` and `menu_items` tables.
"""

from typing import Optional
import structlog

from config import get_supabase_client, get_admin_client
from models.menu import ExistingCategory, ExtractedItem
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class CatalogService:
    """
    Catalog access.

    Every write is a single statement; callers get DatabaseError on failure
    and decide what it means for their run.
    """

    def __init__(self):
        # Service role when configured, so row-level security does not block writes
        self.db = get_admin_client() or get_supabase_client()
        self.categories_table = "categories"
        self.items_table = "menu_items"

    # ===================
    # READ OPERATIONS
    # ===================

    def list_categories(self, menu_group_id: str) -> list[ExistingCategory]:
        """
        Get active categories of a menu group, in display order.

        Args:
            menu_group_id: Menu group UUID

        Returns:
            List of ExistingCategory

        Raises:
            DatabaseError: If the query fails
        """
        logger.debug("getting_categories", menu_group_id=menu_group_id)

        try:
            result = (
                self.db.table(self.categories_table)
                .select("id, name, menu_group_id, display_order")
                .eq("menu_group_id", menu_group_id)
                .eq("is_active", True)
                .order("display_order")
                .execute()
            )

            categories = [ExistingCategory(**row) for row in result.data]

            logger.info(
                "categories_retrieved",
                menu_group_id=menu_group_id,
                count=len(categories)
            )

            return categories

        except Exception as e:
            logger.error(
                "get_categories_failed",
                menu_group_id=menu_group_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def next_display_order(self, menu_group_id: str) -> int:
        """
        Display order for a new category: one past the current maximum.

        Returns 0 for an empty menu group.

        Raises:
            DatabaseError: If the query fails
        """
        try:
            result = (
                self.db.table(self.categories_table)
                .select("display_order")
                .eq("menu_group_id", menu_group_id)
                .order("display_order", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(
                "get_display_order_failed",
                menu_group_id=menu_group_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

        if not result.data or result.data[0].get("display_order") is None:
            return 0
        return int(result.data[0]["display_order"]) + 1

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create_category(
        self,
        restaurant_id: str,
        menu_group_id: str,
        name: str,
        description: Optional[str] = None,
        display_order: Optional[int] = None
    ) -> ExistingCategory:
        """
        Create an active category.

        Args:
            restaurant_id: Owning restaurant
            menu_group_id: Menu group the category belongs to
            name: Category name
            description: Optional description
            display_order: Position; defaults to next_display_order()

        Returns:
            The created category

        Raises:
            DatabaseError: If the insert fails
        """
        if display_order is None:
            display_order = self.next_display_order(menu_group_id)

        logger.info(
            "creating_category",
            menu_group_id=menu_group_id,
            name=name,
            display_order=display_order
        )

        data = {
            "restaurant_id": restaurant_id,
            "menu_group_id": menu_group_id,
            "name": name,
            "description": description,
            "display_order": display_order,
            "is_active": True,
        }

        try:
            result = self.db.table(self.categories_table).insert(data).execute()
        except Exception as e:
            logger.error(
                "create_category_failed",
                name=name,
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        if not result.data:
            raise DatabaseError("insert", f"No row returned for category {name}")

        row = result.data[0]
        category = ExistingCategory(
            id=str(row["id"]),
            name=row.get("name", name),
            menu_group_id=row.get("menu_group_id", menu_group_id),
            display_order=row.get("display_order", display_order)
        )

        logger.info(
            "category_created",
            category_id=category.id,
            name=category.name
        )

        return category

    def bulk_insert_items(
        self,
        restaurant_id: str,
        category_id: str,
        items: list[ExtractedItem]
    ) -> int:
        """
        Insert all items of one category in a single statement.

        Args:
            restaurant_id: Owning restaurant
            category_id: Target category
            items: Items to insert

        Returns:
            Number of items inserted (0 when items is empty; nothing is sent)

        Raises:
            DatabaseError: If the insert fails
        """
        if not items:
            return 0

        rows = [
            {
                "restaurant_id": restaurant_id,
                "category_id": category_id,
                "name": item.name.strip(),
                "description": item.description or None,
                "base_price": item.price,
                "image_url": item.image_url,
                "is_available": True,
            }
            for item in items
        ]

        try:
            result = self.db.table(self.items_table).insert(rows).execute()
        except Exception as e:
            logger.error(
                "bulk_insert_items_failed",
                category_id=category_id,
                count=len(rows),
                error=str(e)
            )
            raise DatabaseError("insert", str(e))

        inserted = len(result.data) if result.data else len(rows)

        logger.info(
            "menu_items_inserted",
            category_id=category_id,
            count=inserted
        )

        return inserted


# Singleton instance
_catalog_service: Optional[CatalogService] = None


def get_catalog_service() -> CatalogService:
    """Get or create CatalogService instance."""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
