"""
Menu import API routes.

One import session per operator flow:
    POST /sessions -> /setup -> /document -> /extract -> /confirm
with /reset available from any stage.
"""

from fastapi import APIRouter, Query, UploadFile, File
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.menu import SUPPORTED_FILE_TYPES
from models.import_session import (
    BeginSessionRequest,
    ConfigureSessionRequest,
    ConfirmImportRequest,
    ImportSessionResponse,
)
from services.import_session_service import get_import_session_service
from services.import_history_service import get_import_history_service
from services.format_detector import MEDIA_TYPES
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("/supported-types")
async def supported_types():
    """Accepted file extensions and media types."""
    return {
        "extensions": SUPPORTED_FILE_TYPES,
        "media_types": sorted(MEDIA_TYPES),
    }


@router.get("/history")
async def import_history(
    restaurant_id: str = Query(..., description="Restaurant UUID"),
    limit: int = Query(20, ge=1, le=100, description="Number of runs")
):
    """Recent import runs of a restaurant, newest first."""
    try:
        service = get_import_history_service()
        return {"data": service.list_recent(restaurant_id, limit=limit)}
    except Exception as e:
        return handle_error(e)


@router.post("/sessions", response_model=ImportSessionResponse, status_code=201)
async def begin_session(data: BeginSessionRequest):
    """Start an import session in setup."""
    try:
        service = get_import_session_service()
        session = service.begin_session(data.restaurant_id, data.menu_group_id)
        return ImportSessionResponse.from_session(session)
    except Exception as e:
        return handle_error(e)


@router.get("/sessions/{session_id}", response_model=ImportSessionResponse)
async def get_session(session_id: str):
    """
    Current session state.

    Raises:
        404: Session expired or not found
    """
    try:
        service = get_import_session_service()
        return ImportSessionResponse.from_session(service.get(session_id))
    except Exception as e:
        return handle_error(e)


@router.delete("/sessions/{session_id}", status_code=204)
async def abandon_session(session_id: str):
    """Discard a session. Already imported items stay."""
    try:
        service = get_import_session_service()
        service.abandon(session_id)
        return None
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/setup", response_model=ImportSessionResponse)
async def configure_session(session_id: str, data: ConfigureSessionRequest):
    """
    Select the menu group (and optional category override).

    Moves setup -> upload.
    """
    try:
        service = get_import_session_service()
        session = service.configure(
            session_id,
            menu_group_id=data.menu_group_id,
            category_override_id=data.category_override_id
        )
        return ImportSessionResponse.from_session(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/document", response_model=ImportSessionResponse)
async def select_document(
    session_id: str,
    file: UploadFile = File(..., description="Menu image, PDF or spreadsheet")
):
    """
    Upload the menu document.

    Raises:
        413: File too large
        415: Unsupported or mislabelled file
    """
    try:
        content = await file.read()
        service = get_import_session_service()
        session = service.select_document(
            session_id,
            file_name=file.filename or "",
            media_type=file.content_type,
            content=content
        )
        return ImportSessionResponse.from_session(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/extract", response_model=ImportSessionResponse)
async def extract_menu(session_id: str):
    """
    Extract and validate the menu. Moves upload -> preview.

    Raises:
        422: Extracted menu has blocking errors (session stays in upload)
        502: Extraction provider failed
    """
    try:
        service = get_import_session_service()
        session = await service.extract(session_id)
        return ImportSessionResponse.from_session(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/confirm", response_model=ImportSessionResponse)
async def confirm_import(session_id: str, data: Optional[ConfirmImportRequest] = None):
    """
    Import the previewed menu. Moves preview -> importing -> complete.

    On a mid-import failure the session returns to preview and the error
    details carry the partial outcome.
    """
    try:
        data = data or ConfirmImportRequest()
        service = get_import_session_service()
        session = service.confirm_import(
            session_id,
            category_override_id=data.category_override_id,
            edited_data=data.edited_data
        )
        return ImportSessionResponse.from_session(session)
    except Exception as e:
        return handle_error(e)


@router.post("/sessions/{session_id}/reset", response_model=ImportSessionResponse)
async def reset_session(session_id: str):
    """Start over from setup, keeping restaurant and menu group."""
    try:
        service = get_import_session_service()
        return ImportSessionResponse.from_session(service.reset(session_id))
    except Exception as e:
        return handle_error(e)
