"""Vault Sync Backend API - FastAPI application."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from vaultsync import __version__
from vaultsync.crypto import EnvelopeCodec, EnvelopeError
from vaultsync.storage import TransientStoreFailure, run_in_transaction
from vaultsync.sync_engine import ValidationFailure

from .config import Settings, get_settings
from .database import Store, get_record_store
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import auth_router, metadata_router, sync_router

logger = get_logger("vaultsync.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level, settings.debug)
    get_record_store(settings)
    logger.info(
        f"Starting {settings.service_name} on port {settings.service_port} "
        f"(db={settings.database_path}, debug={settings.debug})"
    )
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.service_name}")


app = FastAPI(
    title="Vault Sync Backend API",
    description="Encrypted file-metadata sync for a user's devices",
    version=__version__,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TransientStoreFailure)
async def transient_store_failure_handler(request: Request, exc: TransientStoreFailure):
    """Store trouble: nothing was committed, the client should retry."""
    logger.error(f"Store failure on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage temporarily unavailable, retry the request"},
        headers={"Retry-After": "1"},
    )


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    """Malformed batch: rejected as a whole."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Invalid sync batch", "errors": exc.problems},
    )


# Include routers
app.include_router(auth_router)
app.include_router(metadata_router)
app.include_router(sync_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "vaultsync-backend",
        "version": __version__,
        "status": "ok",
    }


@app.get("/api/status")
async def api_status():
    """Liveness probe used by clients before they log in."""
    return {"status": "online", "service": get_settings().service_name}


@app.get("/health")
def health(store: Store, settings: Annotated[Settings, Depends(get_settings)]):
    """Detailed health check with actual store and envelope verification."""
    store_status = "disconnected"
    try:
        run_in_transaction(store, lambda uow: uow.get_last_sync("__health__"), max_attempts=1)
        store_status = "connected"
    except TransientStoreFailure as e:
        store_status = f"error: {str(e)[:50]}"

    envelope_status = "failed"
    try:
        if EnvelopeCodec(settings.encrypt_key).self_check():
            envelope_status = "ok"
    except EnvelopeError as e:
        envelope_status = f"error: {type(e).__name__}"

    healthy = store_status == "connected" and envelope_status == "ok"
    return {
        "status": "healthy" if healthy else "degraded",
        "database": store_status,
        "envelope": envelope_status,
    }
