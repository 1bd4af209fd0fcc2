"""
Records every menu import run in the `menu_imports` audit table.
"""
import hashlib
from datetime import datetime, timezone
import structlog
from typing import Optional

from config import get_supabase_client
from exceptions import DatabaseError
from models.menu import SourceDocument, ExtractedMenuData
from models.import_session import ImportOutcome

logger = structlog.get_logger(__name__)


def file_hash(content: bytes) -> str:
    """SHA-256 of the uploaded bytes."""
    return hashlib.sha256(content).hexdigest()


class ImportHistoryService:
    def __init__(self):
        self.db = get_supabase_client()
        self.table = "menu_imports"

    def list_recent(self, restaurant_id: str, limit: int = 20) -> list[dict]:
        """Most recent import runs of a restaurant, newest first."""
        try:
            result = (
                self.db.table(self.table)
                .select("id, file_name, provider, status, items_imported, categories_created, error_message, completed_at")
                .eq("restaurant_id", restaurant_id)
                .order("completed_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("list_menu_imports_failed", restaurant_id=restaurant_id, error=str(e))
            raise DatabaseError("select", str(e))
        return result.data or []

    def record_import(
        self,
        restaurant_id: str,
        menu_group_id: Optional[str],
        document: Optional[SourceDocument],
        outcome: ImportOutcome,
        extracted_data: Optional[ExtractedMenuData] = None,
        category_override_id: Optional[str] = None,
    ) -> None:
        """
        Record a commit run, successful or not.

        Audit failures are logged and swallowed: the import result the
        caller gets must not depend on this table.
        """
        error_message = outcome.error[:2000] if outcome.error else None
        row = {
            "restaurant_id": restaurant_id,
            "menu_group_id": menu_group_id,
            "category_id": category_override_id,
            "file_name": document.file_name if document else "unknown",
            "file_type": document.media_type if document else None,
            "file_hash": file_hash(document.content) if document else "",
            "provider": extracted_data.provider if extracted_data else None,
            "status": outcome.status.value,
            "extracted_data": extracted_data.model_dump(mode="json") if extracted_data else None,
            "items_imported": outcome.items_imported,
            "categories_created": outcome.categories_created,
            "categories_matched": outcome.categories_matched,
            "failed_category": outcome.failed_category,
            "error_message": error_message,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.db.table(self.table).insert(row).execute()
            logger.info(
                "menu_import_recorded",
                restaurant_id=restaurant_id,
                file_name=row["file_name"],
                status=row["status"],
                items_imported=outcome.items_imported,
            )
        except Exception as log_err:
            logger.warning(
                "failed_to_record_menu_import",
                restaurant_id=restaurant_id,
                status=row["status"],
                log_error=str(log_err),
            )


_service: Optional[ImportHistoryService] = None


def get_import_history_service() -> ImportHistoryService:
    global _service
    if _service is None:
        _service = ImportHistoryService()
    return _service
