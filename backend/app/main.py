"""FastAPI main application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app import models  # noqa: F401  (register tables before create_all)
from app.api.v1 import csv_import
from app.config import settings
from app.core.database import close_db, init_db
from app.core.logging_config import setup_logging
from app.core.metrics import setup_metrics
from app.middleware.error_handler import ErrorHandlerMiddleware, csv_import_error_handler
from app.middleware.request_logging import (
    AuditLogMiddleware,
    RequestLoggingMiddleware,
    UserContextMiddleware,
)
from app.middleware.request_size_limit import RequestSizeLimitMiddleware
from app.services.csv_import.errors import CSVImportError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting %s %s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)

    await init_db()
    if settings.oracle_enabled:
        logger.info("Classification oracle enabled (model %s)", settings.CLASSIFIER_ORACLE_MODEL)
    else:
        logger.info("No classification oracle configured; using heuristic classifier")

    yield

    logger.info("Shutting down %s", settings.APP_NAME)
    await close_db()


# Disable interactive API docs in production to reduce attack surface
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

setup_metrics(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handler - Catch uncaught exceptions
app.add_middleware(ErrorHandlerMiddleware)

# Request size limit - Reject uploads above the import file limit
app.add_middleware(RequestSizeLimitMiddleware, max_request_size=settings.IMPORT_MAX_FILE_SIZE_BYTES)

# Audit logging - Track ledger-changing operations (innermost of the logging stack)
app.add_middleware(AuditLogMiddleware)

# Request logging - Track all API requests
app.add_middleware(RequestLoggingMiddleware)

# User context extraction - added last so it runs BEFORE logging middleware
app.add_middleware(UserContextMiddleware)


app.add_exception_handler(CSVImportError, csv_import_error_handler)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(csv_import.router, prefix="/api/v1/imports", tags=["CSV Import"])
