from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from rentals.config import settings
from rentals.api.v1.router import api_router
from rentals.database import async_session_factory
from rentals.database_init import initialize_database
from rentals.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler, get_job_status
from rentals.schemas.base import ApiResponse


logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables and seed roles, first admin, settings and languages
    - Start background scheduler

    Shutdown:
    - Stop background scheduler
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    await initialize_database()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT-based authentication with access/refresh tokens"},
    {"name": "Users", "description": "Back-office users and role assignments"},
    {"name": "Rooms", "description": "Rooms, rent and occupancy status"},
    {"name": "Tenants", "description": "Tenant profiles, contracts and room assignment"},
    {"name": "Invoices", "description": "Monthly rent invoices, PDF export and reminders"},
    {"name": "Payments", "description": "Payments and invoice balance reconciliation"},
    {"name": "Items", "description": "Catalogue of billable charges"},
    {"name": "Reports", "description": "Occupancy, revenue, aging and CSV exports"},
    {"name": "Localization", "description": "Languages and translated UI strings"},
    {"name": "System", "description": "System settings and database maintenance"},
]

API_DESCRIPTION = """
## Rental Management API

Back office for room rentals: rooms, tenants, invoices, payments and reports.

### Authentication

All endpoints except login, token refresh and localization reads require a JWT.
Include token in Authorization header: `Bearer <token>`

### Roles

| Role | Access |
|------|--------|
| **ADMIN** | Everything, including deletes, users and system settings |
| **MANAGER** | Reports, statistics, payment changes, monthly invoicing |
| **STAFF** | Day-to-day tenant, invoice and payment entry |

### Response envelope

Every JSON response has the shape `{success, data, message, errors}`.

### Error Codes

| Code | Description |
|------|-------------|
| 400 | Bad Request - Business rule violated |
| 401 | Unauthorized - Invalid/expired token |
| 403 | Forbidden - Insufficient role |
| 404 | Not Found - Resource doesn't exist |
| 409 | Conflict - Duplicate resource or concurrent update |
| 422 | Unprocessable Entity - Validation failed |
| 500 | Internal Server Error |
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
    swagger_ui_parameters={
        "deepLinking": True,
        "persistAuthorization": True,
        "filter": True,
    },
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


def envelope(status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    body = ApiResponse.fail(message, errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return envelope(exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return envelope(422, "Validation failed", errors)


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    logger.warning(f"Concurrent update rejected on {request.method} {request.url.path}: {exc}")
    return envelope(409, "The record was changed by another request; reload and try again")


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return envelope(500, "An unexpected error occurred")


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown",
            "scheduler": "running" if scheduler.running else "stopped",
        },
        "jobs": get_job_status(),
    }

    # Check database connectivity
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    # Return 503 if unhealthy
    if health_status["status"] == "unhealthy":
        body = ApiResponse(
            success=False,
            data=health_status,
            message="Service unhealthy",
            errors=[health_status["checks"]["database"]],
        )
        return JSONResponse(status_code=503, content=body.model_dump(mode="json"))

    return ApiResponse.ok(health_status, message="Service healthy")


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return ApiResponse.ok(
        {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        },
        message=f"Welcome to {settings.APP_NAME}",
    )
