"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.menu_import import router as menu_import_router

__all__ = [
    "menu_import_router",
]
