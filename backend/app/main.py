"""
FastAPI Application Entry Point.

This is the main application file for the Plot Ledger Backend.
"""

from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI, HTTPException, Depends
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base, get_db
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.audit_log import AuditLog
from backend.app.models.project import Project
from backend.app.models.plot import Plot
from backend.app.models.bank_account import BankAccount, BankTransaction  # before ledger (FK)
from backend.app.models.partner import Partner, CapitalTransaction, ProfitDistribution
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.commission_rule import CommissionRule
from backend.app.models.commission import Commission
from backend.app.models.installment_plan import InstallmentPlan, Installment
from backend.app.models.seller_payment import SellerPayment
from backend.app.models.notification import Notification


logger = logging.getLogger("plotledger.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures the `plotledger` loggers.
    2. Creates database tables on startup.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Ledger and transaction workflow engine for a real-estate back office",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Checks the database with a trivial query. The service reports
    "degraded" rather than failing when the database is unreachable.

    Returns:
        dict: Status, database reachability and application information
    """
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Database check failed: %s", exc)
        database = "unavailable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "database": database,
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Plot Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
