from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import argparse
import logging
import logging.config
from contextlib import asynccontextmanager

# Import settings (loads .env)
import settings

logging.config.dictConfig(settings.get_log_config())

logger = logging.getLogger(__name__)

from sqlalchemy.orm import Session

from db import get_db, get_engine, init_database, set_global_engine, get_session_factory
from auth_routes import router as auth_router, limiter
from api.routes_panel import router as panel_router
from services.port_allocator import PortAllocator
from services.relay_catalog import build_method_catalog
from services.relay_container_manager import RelayContainerManager, ContainerRuntimeError
from services.usage_sync_service import UsageSyncService
from services.user_store import UserStore


def build_port_allocator() -> PortAllocator:
    return PortAllocator(
        start_port=settings.PORT_RANGE_START,
        end_port=settings.PORT_RANGE_END,
        check_bindable=settings.PORT_PROBE_SYSTEM
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    logger.info(f"Starting {settings.SERVICE_NAME} v{settings.SERVICE_VERSION}")

    engine = get_engine(settings.INTERNAL_DB_PATH)
    init_database(engine)
    set_global_engine(engine)

    app.state.method_catalog = build_method_catalog()
    app.state.port_allocator = build_port_allocator()

    try:
        app.state.container_runtime = RelayContainerManager()
    except ContainerRuntimeError as e:
        # Panel stays up for read-only use; create requests get 503
        logger.error(f"Container runtime unavailable: {e}")
        app.state.container_runtime = None

    if app.state.container_runtime is not None and settings.USAGE_SYNC_ENABLED:
        app.state.usage_sync = UsageSyncService(
            get_db_session=get_session_factory(),
            runtime=app.state.container_runtime,
            check_interval_seconds=settings.USAGE_SYNC_INTERVAL_SECONDS
        )
        await app.state.usage_sync.start()

    yield

    if getattr(app.state, "usage_sync", None) is not None:
        try:
            await app.state.usage_sync.stop()
        except Exception as e:
            logger.error(f"Error stopping usage sync service: {e}", exc_info=True)

    engine.dispose()
    logger.info("Application shutdown")


# Create app
app = FastAPI(title="Relay Panel", version=settings.SERVICE_VERSION, lifespan=lifespan)

# Rate limiter shared with auth_routes decorators
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Credentials are sent via Authorization header, so wildcard origins are fine
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses"""
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# Exception handlers keep CORS headers on error responses
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with CORS headers"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail), "data": None},
        headers={**CORS_HEADERS, **(exc.headers or {})},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors with CORS headers"""
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Invalid request", "data": exc.errors()},
        headers=CORS_HEADERS,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions with CORS headers"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "data": None},
        headers=CORS_HEADERS,
    )


# Include routers
app.include_router(auth_router)
app.include_router(panel_router)


@app.get("/health")
def health(request: Request, db: Session = Depends(get_db)):
    usage_sync = getattr(request.app.state, "usage_sync", None)
    port_allocator = getattr(request.app.state, "port_allocator", None)
    ports = None
    if port_allocator is not None:
        ports = port_allocator.get_port_usage_stats(UserStore(db).list_used_ports())
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "container_runtime": getattr(request.app.state, "container_runtime", None) is not None,
        "usage_sync": usage_sync.get_stats() if usage_sync else None,
        "ports": ports,
    }


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Relay panel server")
    parser.add_argument("-v", "--version", action="store_true", help="print version and exit")
    parser.add_argument("--host", default=settings.APP_HOST)
    parser.add_argument("--port", type=int, default=settings.APP_PORT)
    args = parser.parse_args()

    if args.version:
        print(settings.SERVICE_VERSION)
    else:
        import uvicorn
        uvicorn.run(app, host=args.host, port=args.port)
