"""
ISP Manager - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import init_db, close_db
from app.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Back-office API for ISP operators: payroll, leave, online payments and the customer app",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Uniform {"success": false, "error": ...} envelope for every error
setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
    }


@app.get("/api/v1")
async def api_root():
    """API v1 root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name} API v1",
        "endpoints": {
            "payroll": "/api/v1/payroll",
            "leave": "/api/v1/leave",
            "payments": "/api/v1/payments",
            "exports": "/api/v1/exports",
            "reports": "/api/v1/reports",
            "customer_api": "/customer-api",
        }
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from app.routers import (  # noqa: E402
    payroll, leave, payments, customer_api, exports, reports,
)

# Staff payroll
app.include_router(payroll.router, prefix="/api/v1/payroll", tags=["Payroll"])

# Leave management
app.include_router(leave.router, prefix="/api/v1/leave", tags=["Leave"])

# Payment records and gateway configuration
app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])

# Checkout and gateway callbacks (public)
app.include_router(payments.public_router, tags=["Payment Gateway"])

# Downloads and printable reports
app.include_router(exports.router, prefix="/api/v1/exports", tags=["Export & Download"])
app.include_router(reports.router, prefix="/api/v1/reports", tags=["Reports"])

# Customer app / self-care API
app.include_router(customer_api.router, prefix="/customer-api", tags=["Customer API"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
