from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import DBAPIError
import logging
import time

from app.config import settings
from app.database import init_db
from app.api.routes import router as api_router
from app.api.admin_routes import router as admin_router
from app.services.exceptions import ServiceError

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown events for the FastAPI application.
    """
    logger.info("Starting Subscription Manager API...")

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down Subscription Manager API...")

def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(DBAPIError)
    async def handle_database_error(request: Request, exc: DBAPIError):
        logger.error(f"Database error on {request.method} {request.url.path}: {str(exc)}")
        return JSONResponse(status_code=503, content={"detail": "Database temporarily unavailable"})

def create_app() -> FastAPI:
    app = FastAPI(
        title="Subscription Manager API",
        description="Subscriptions, usage reporting and user notifications",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Admin Request Logging Middleware
    @app.middleware("http")
    async def log_admin_requests(request: Request, call_next):
        """
        Log admin requests for monitoring and debugging.
        """
        start_time = time.perf_counter()
        response = await call_next(request)

        if request.url.path.startswith("/admin"):
            process_time = time.perf_counter() - start_time
            logger.info(
                f"Admin request: {request.method} {request.url.path} "
                f"-> {response.status_code} in {process_time:.3f}s"
            )

        return response

    register_exception_handlers(app)

    # Include routers
    app.include_router(api_router)
    app.include_router(admin_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Application health check"""
        return {
            "status": "healthy",
            "service": "subscription-manager",
            "version": "1.0.0"
        }

    return app

# Create the app instance
app = create_app()
