"""
Nutrinea Billing - FastAPI Application

Main entry point for the billing backend.
Provides the Asaas webhook, subscription, checkout and admin endpoints.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.infrastructure.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DatabaseError,
    NotFoundError,
    NutrineaError,
    PaymentGatewayError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info(f"Nutrinea Billing starting in {settings.environment} mode...")

    if settings.database_url:
        try:
            from app.infrastructure.db.database import init_db
            await init_db()
            logger.info("SQLModel database connection pool initialized")
        except Exception as e:
            logger.warning(f"SQLModel database initialization skipped: {e}")

    yield

    if settings.database_url:
        try:
            from app.infrastructure.db.database import close_db
            await close_db()
            logger.info("SQLModel database connection pool closed")
        except Exception as e:
            logger.warning(f"SQLModel database shutdown error: {e}")

    logger.info("Nutrinea Billing shutting down...")


app = FastAPI(
    title="Nutrinea Billing",
    description="Subscription billing and Asaas payment reconciliation",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle validation errors."""
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    """Handle access to another user's resources."""
    return JSONResponse(status_code=403, content=exc.to_dict())


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    """Handle not found errors."""
    return JSONResponse(status_code=404, content=exc.to_dict())


@app.exception_handler(PaymentGatewayError)
async def payment_gateway_error_handler(request: Request, exc: PaymentGatewayError):
    """Upstream gateway rejected the call or was unreachable."""
    logger.error(f"Payment gateway error: {exc.message}")
    return JSONResponse(status_code=502, content=exc.to_dict())


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """A required integration is not configured."""
    return JSONResponse(status_code=503, content=exc.to_dict())


@app.exception_handler(DatabaseError)
async def database_error_handler(request: Request, exc: DatabaseError):
    logger.error(f"Database error: {exc.message}")
    return JSONResponse(status_code=500, content=exc.to_dict())


@app.exception_handler(NutrineaError)
async def general_error_handler(request: Request, exc: NutrineaError):
    """Handle all other application errors."""
    return JSONResponse(status_code=500, content=exc.to_dict())


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "nutrinea-billing"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Nutrinea Billing API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from app.api.routes import admin, checkout, subscriptions, webhooks

app.include_router(webhooks.router, prefix="/api", tags=["Webhooks"])
app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(checkout.router, prefix="/api", tags=["Checkout"])
app.include_router(admin.router)
