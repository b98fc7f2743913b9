"""
Main FastAPI application with middleware, routing, and lifecycle management.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import structlog

from jaydus.core.config import settings
from jaydus.core.exceptions import JaydusError
from jaydus.core.log_config import configure_logging
from jaydus.cache.redis_client import redis_client
from jaydus.repositories import get_data_store

configure_logging(settings.log_level)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    logger.info("Starting Jaydus Platform API", backend=settings.database_backend)

    store = get_data_store()
    await store.connect()
    logger.info("Data store ready", backend=store.backend)

    if redis_client.enabled:
        try:
            await redis_client.connect()
        except Exception as e:
            # Rate limiting fails open without Redis
            logger.warning("Redis unavailable, rate limiting disabled", error=str(e))

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down Jaydus Platform API")

    try:
        await redis_client.disconnect()
        await store.close()
    except Exception as e:
        logger.error("Shutdown error", error=str(e))

    logger.info("Application shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Multi-provider LLM chat, image generation, subscriptions and API keys",
    version=settings.version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Security middleware
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"] if settings.environment != "production" else ["jaydus.com", "*.jaydus.com"]
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests with timing."""
    start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    try:
        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            process_time=round(process_time, 4),
        )

        response.headers["X-Process-Time"] = str(process_time)
        return response

    except Exception as e:
        process_time = time.time() - start_time
        logger.error(
            "Request failed",
            method=request.method,
            url=str(request.url),
            error=str(e),
            process_time=round(process_time, 4),
        )
        raise


@app.exception_handler(JaydusError)
async def jaydus_exception_handler(request: Request, exc: JaydusError):
    """Domain errors carry their own status code."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Request error",
        method=request.method,
        url=str(request.url),
        status_code=exc.status_code,
        error_code=exc.error_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request body"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{message}: {location} {errors[0].get('msg', '')}".strip()
    return JSONResponse(status_code=400, content={"error": message})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(
        "Unhandled exception",
        method=request.method,
        url=str(request.url),
        error=str(exc),
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"error": "An error occurred processing your request"}
    )


# Health check endpoints
@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "jaydus-api",
        "version": settings.version,
        "environment": settings.environment,
    }


@app.get("/health/detailed")
async def detailed_health_check():
    """Detailed health check with dependency status."""
    health_status = {
        "status": "healthy",
        "service": "jaydus-api",
        "version": settings.version,
        "environment": settings.environment,
        "timestamp": time.time(),
        "dependencies": {}
    }

    store = get_data_store()
    if await store.ping():
        health_status["dependencies"]["database"] = {"status": "healthy", "backend": store.backend}
    else:
        health_status["dependencies"]["database"] = {"status": "unhealthy", "backend": store.backend}
        health_status["status"] = "degraded"

    if redis_client.enabled:
        if await redis_client.ping():
            health_status["dependencies"]["redis"] = {"status": "healthy"}
        else:
            health_status["dependencies"]["redis"] = {"status": "unhealthy"}
            health_status["status"] = "degraded"
    else:
        health_status["dependencies"]["redis"] = {"status": "disabled"}

    health_status["dependencies"]["stripe"] = {"status": "mock" if settings.stripe_mock_mode else "live"}

    return health_status


# Import and include API router
from jaydus.api.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "jaydus.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
