from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from typing import Optional
import time
import logging

from .api.v1.appointments import router as appointments_router
from .api.v1.audit import router as audit_router
from .api.v1.auth import router as auth_router
from .api.v1.chat import router as chat_router
from .api.v1.prescriptions import router as prescriptions_router
from .api.v1.profiles import router as profiles_router
from .api.v1.slots import router as slots_router
from .api.v1.video import router as video_router
from .core.config import Settings, settings as default_settings
from .core.database import init_db
from .core.exceptions import (
    ConflictError, DomainError, ForbiddenError, InternalError,
    InvalidTransitionError, NotFoundError, ValidationError
)
from .core.runtime import Runtime, build_runtime

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

def create_app(settings: Optional[Settings] = None, runtime: Optional[Runtime] = None) -> FastAPI:
    settings = settings or default_settings
    runtime = runtime or build_runtime(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Booking and appointment lifecycle service for online consultations",
        openapi_url="/api/v1/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.runtime = runtime

    # Middleware setup
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Only add TrustedHostMiddleware in production, not in testing
    if not settings.TESTING:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=["localhost", "127.0.0.1", "*.localhost", "testserver"]
        )

    # Custom middleware for request logging and timing
    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)

        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        return response

    # Exception handlers
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        status_code = next(
            (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)),
            status.HTTP_400_BAD_REQUEST,
        )
        if status_code >= 500:
            logger.error(f"Internal error on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "message": exc.message}
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "message": "The requested resource was not found",
                "path": str(request.url.path)
            }
        )

    # Include routers
    for router in (
        auth_router, profiles_router, slots_router, appointments_router,
        chat_router, prescriptions_router, video_router, audit_router,
    ):
        app.include_router(router, prefix="/api/v1")

    # Startup and shutdown events
    @app.on_event("startup")
    async def startup_event():
        """Initialize application on startup."""
        logger.info(f"Starting {settings.APP_NAME}...")

        db_url = settings.get_database_url
        db_type = "PostgreSQL" if "postgresql" in db_url else "SQLite" if "sqlite" in db_url else "Unknown"
        logger.info(f"Using {db_type} database")

        try:
            init_db(runtime.engine)
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {str(e)}")
            raise

        runtime.start()
        logger.info("Application startup complete")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on application shutdown."""
        logger.info(f"Shutting down {settings.APP_NAME}...")
        runtime.stop()

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": settings.VERSION
        }

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": f"Welcome to {settings.APP_NAME} API",
            "version": settings.VERSION,
            "docs": "/docs",
            "health": "/health"
        }

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG,
        log_level="info"
    )
