"""Main FastAPI application."""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cargo_manifest import __version__
from cargo_manifest.core.config import settings
from cargo_manifest.core.logging import setup_logging, get_logger
from cargo_manifest.core.database import engine
from cargo_manifest.core.errors import ManifestError
from cargo_manifest.api.v1 import router as v1_router
from cargo_manifest.models import shipment, manifest, tracking_event  # noqa: F401  register models with Base


# Setup logging
setup_logging(settings.DEBUG)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Cargo Manifest API")
    logger.info(f"Debug mode: {settings.DEBUG}")
    yield
    logger.info("Shutting down Cargo Manifest API")
    await engine.dispose()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="Manifest build and scan API for cargo linehaul",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(v1_router, prefix="/api")


@app.exception_handler(ManifestError)
async def manifest_error_handler(request: Request, exc: ManifestError):
    """Map domain errors to JSON responses carrying a stable error code."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log validation errors for debugging 422s."""
    # ctx may hold exception instances raised by model validators
    errors = [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors()]
    logger.error(f"Validation error on {request.url.path}: {errors}")
    return JSONResponse(
        status_code=422,
        content={"detail": errors, "code": "INVALID_REQUEST"},
    )


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.APP_NAME}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.APP_NAME,
        "version": __version__,
        "docs": "/api/docs",
    }
