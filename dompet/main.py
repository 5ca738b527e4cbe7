"""
Dompet API Service

Household finance backend: accounts, transactions, subscription plans and
plan entitlement checks.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from dompet.api.v1.router import api_router
from dompet.core.config import settings
from dompet.core.exceptions import DompetError, EntitlementError, ReconciliationError
from dompet.db.base import engine

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Starting up Dompet API (%s)", settings.ENVIRONMENT)
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection established")
    except Exception as e:
        # Don't fail startup, allow health endpoint to report status
        logger.error("Database connection failed: %s", e)
    yield
    engine.dispose()
    logger.info("Shutting down Dompet API")


# Create FastAPI instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EntitlementError)
async def entitlement_exception_handler(request: Request, exc: EntitlementError):
    """Render access denials as top-level JSON carrying the client action hint."""
    return JSONResponse(status_code=exc.status_code, content=exc.body)


@app.exception_handler(ReconciliationError)
async def reconciliation_exception_handler(request: Request, exc: ReconciliationError):
    return JSONResponse(status_code=exc.status_code, content=exc.body)


@app.exception_handler(DompetError)
async def dompet_exception_handler(request: Request, exc: DompetError):
    logger.error("Unhandled application error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.body)


# Global exception handler so 500s are JSON like everything else
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.exception("Unhandled exception on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error", "type": type(exc).__name__},
    )


# Include API router
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to Dompet API",
        "version": settings.VERSION,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "dompet-api",
        "version": settings.VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "dompet.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
