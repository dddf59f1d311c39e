"""
FastAPI Application Entry Point.

This is the main application file for the Barbershop Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from barbershop.app.core.config import settings
from barbershop.app.api.v1.router import router as api_v1_router
from barbershop.app.core.observability import ObservabilityMiddleware
from barbershop.app.db.session import engine, Base
from barbershop.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from barbershop.app.models.business_settings import BusinessSettings
from barbershop.app.models.client import Client
from barbershop.app.models.barber import Barber
from barbershop.app.models.service import Service
from barbershop.app.models.appointment import Appointment
from barbershop.app.models.subscription import Subscription
from barbershop.app.models.payment_intent import PaymentIntent
from barbershop.app.models.webhook_event import WebhookEvent
from barbershop.app.models.commission import Commission
from barbershop.app.models.ledger_entry import LedgerEntry
from barbershop.app.models.audit_log import AuditLog
from barbershop.app.models.reconciliation_issue import ReconciliationIssue

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup (including the PostgreSQL
    appointment exclusion constraint).
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
    description="Barbershop booking, payment reconciliation and ledger API",
    lifespan=lifespan,
)

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
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")
