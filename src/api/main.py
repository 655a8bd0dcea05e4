"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryDocumentStore
from src.adapters.repository.postgres import PostgresDocumentStore, run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import get_settings
from src.domain.exceptions import (
    InvalidCodeFormat,
    OrganizationNotFound,
    RegistrationError,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Holder onboarding API v1 - Registration codes, MFA verification "
        "codes and batch pre-registration",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the document store selected by STORE_BACKEND
    - For PostgreSQL, opens the connection pool and runs migrations
    - Closes the connection pool on shutdown
    """
    settings = get_settings()
    logger.info("Starting application with %s document store...", settings.store_backend)

    pool = None
    if settings.store_backend == "memory":
        app.state.store = InMemoryDocumentStore()
    else:
        logger.info("Connecting to database...")
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        app.state.store = PostgresDocumentStore(pool)
    app.state.pool = pool

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="healthpass-onboarding",
    description="Holder onboarding API - Registration and verification code lifecycle",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.exception_handler(RegistrationError)
async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    """
    Translate domain exceptions that escaped a route.

    Missing organizations are client errors; store failures, malformed
    documents and misconfigured organizations are server errors.
    """
    if isinstance(exc, OrganizationNotFound):
        status_code = 404
    elif isinstance(exc, InvalidCodeFormat):
        status_code = 400
    else:
        status_code = 500
        if isinstance(exc, StoreUnavailable):
            logger.error("Document store unavailable: %s", exc)
        else:
            logger.error("Unhandled domain error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
