"""
Menu Import API.

FastAPI application entry point. Run with:
    uvicorn main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings, check_connection
from exceptions import AppError
from routes import menu_import_router


def configure_logging() -> None:
    """stdlib logging at the configured level, structlog on top of it."""
    logging.basicConfig(format="%(message)s", level=settings.log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the active configuration and check the catalog tables on startup."""
    logger.info(
        "application_starting",
        environment=settings.environment,
        extraction_provider=settings.extraction_provider,
        placeholder_images=settings.generate_placeholder_images
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            categories=db_status["categories_count"],
            menu_items=db_status["menu_items_count"]
        )
    else:
        # The API still starts; /health reports degraded
        logger.error("database_connection_failed", error=db_status.get("error"))

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title="Menu Import API",
    description="Turns photographed, scanned or spreadsheet menus into catalog categories and items",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(menu_import_router, prefix="/api/menu-import", tags=["Menu Import"])


@app.get("/health")
async def health_check():
    """Database state and the extraction provider in use."""
    db_status = check_connection()
    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "extraction_provider": settings.extraction_provider,
        "database": db_status
    }


@app.get("/")
async def root():
    return {
        "name": "Menu Import API",
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else None,
        "health": "/health",
        "menu_import": "/api/menu-import",
    }


# ===================
# ERROR HANDLERS
# ===================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Application errors that escaped a route keep their own status and body."""
    logger.warning(
        "app_error",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything else becomes a 500 in the standard error format."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
