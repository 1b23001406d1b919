"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — request-aware log format (see logging_config.py)
  2. Lifespan manager — handles startup/shutdown (DB table creation, cleanup)
  3. Middleware — request IDs and CORS
  4. Exception handlers — maps domain errors to HTTP responses
  5. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn vouchify.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import vouchify.models  # noqa: F401  (registers every table on Base.metadata)
from vouchify.config import settings
from vouchify.database import engine, Base
from vouchify.exceptions import register_exception_handlers
from vouchify.logging_config import configure_logging, install_request_id_middleware
from vouchify.routers import (
    admin,
    auth,
    notifications,
    payouts,
    reviews,
    transactions,
    vouchers,
    wallet,
)

configure_logging(settings.LOG_LEVEL)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Creates all database tables if they don't exist. In production use
      migrations instead, so schema changes are versioned.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Voucher resale marketplace with admin-verified manual payments",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

install_request_id_middleware(app)

# CORS: lock this down to the real frontend domain(s) in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(vouchers.router, prefix="/vouchers", tags=["Vouchers"])
app.include_router(reviews.router, prefix="/vouchers", tags=["Reviews"])
app.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
app.include_router(payouts.router, prefix="/payouts", tags=["Payouts"])
app.include_router(wallet.router, prefix="/wallet", tags=["Wallet"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {"status": "ok", "version": settings.APP_VERSION}
