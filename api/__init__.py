"""REST API module for the marketplace.

This module provides HTTP endpoints for:
- Browsing, searching and reviewing listings
- Authentication callbacks and two-factor authentication
- Buyer/seller messaging and notifications
- Payment status and subscription plans
- Profiles, follows and likes
- Admin moderation and audit logs
- Currency conversion and system health
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings_conf
from database import init_db, close as db_close

# Configure logging
logging.basicConfig(
    level=settings_conf.get('log_level', 'INFO'),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Initializing API...")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down API...")
    await db_close()

# Create FastAPI app
app = FastAPI(
    title="Marketplace API",
    description="REST API for the marketplace",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"error": message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject malformed request data with 400."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request data", "details": jsonable_encoder(exc.errors())}
    )

@app.exception_handler(APIError)
async def platform_exception_handler(request: Request, exc: APIError):
    """Platform query failures that no endpoint handled."""
    logger.error(f"Platform error on {request.method} {request.url.path}: [{exc.code}] {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Database error"}
    )

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"}
    )

# Import and include all routers
from .auth import router as auth_router, callback_router
from .listings import router as listings_router
from .categories import router as categories_router
from .cron import router as cron_router
from .messages import router as messages_router
from .notifications import router as notifications_router
from .payments import router as payments_router
from .profile import router as profile_router
from .admin import router as admin_router
from .upload import router as upload_router
from .currency import router as currency_router
from .system import router as system_router

# Include all routers
app.include_router(callback_router)
app.include_router(auth_router)
app.include_router(listings_router)
app.include_router(categories_router)
app.include_router(cron_router)
app.include_router(messages_router)
app.include_router(notifications_router)
app.include_router(payments_router)
app.include_router(profile_router)
app.include_router(admin_router)
app.include_router(upload_router)
app.include_router(currency_router)
app.include_router(system_router)
