"""
FastAPI Application Entry Point.

This is the main application file for the Fleet Back Office Backend.
"""

import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from backend.app.core.config import settings
from backend.app.core.observability import configure_logging, ObservabilityMiddleware
from backend.app.core.rate_limit import RateLimitMiddleware
from backend.app.core.redis_client import ping_redis
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.city import City
from backend.app.models.vehicle import Vehicle
from backend.app.models.trip import Trip, TripClient
from backend.app.models.ledger_entry import TripLedgerEntry
from backend.app.models.trip_memo import TripMemo
from backend.app.models.counter import Counter
from backend.app.models.payment import Payment
from backend.app.models.maintenance import MaintenanceRecord
from backend.app.models.expense import Expense
from backend.app.models.advance import Advance
from backend.app.models.driver_calculation import DriverCalculation
from backend.app.models.activity_log import ActivityLog

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Disposes of the connection pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Back office API for a transport business: trips, fleet, drivers, clients and money",
    lifespan=lifespan,
)

# Middleware (last added runs first)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and Redis reachability
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if await ping_redis() else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")

# Uploaded documents (POD, invoices, vehicle papers)
os.makedirs(settings.upload_dir, exist_ok=True)
app.mount(settings.upload_base_url, StaticFiles(directory=settings.upload_dir), name="uploads")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Fleet Back Office API",
        "docs": "/docs",
        "health": "/health",
    }
