"""
Business logic services.

Each service handles one step of the menu import.
"""

from services.catalog_service import CatalogService, get_catalog_service
from services.import_history_service import ImportHistoryService, get_import_history_service
from services.menu_import_service import MenuImportService, get_menu_import_service
from services.extraction_provider import ExtractionProvider, get_extraction_provider
from services.free_extraction_provider import FreeExtractionProvider
from services.vision_extraction_provider import VisionExtractionProvider
from services.import_session_service import ImportSessionService, get_import_session_service

__all__ = [
    "CatalogService",
    "get_catalog_service",
    "ImportHistoryService",
    "get_import_history_service",
    "MenuImportService",
    "get_menu_import_service",
    "ExtractionProvider",
    "get_extraction_provider",
    "FreeExtractionProvider",
    "VisionExtractionProvider",
    "ImportSessionService",
    "get_import_session_service",
]
