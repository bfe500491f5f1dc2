"""
Main FastAPI application entry point.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
from contextlib import asynccontextmanager

from didattika.config.settings import settings
from didattika.utils.exceptions import DidattikaError
from didattika.utils.logger import get_logger, log_error, setup_logging
from didattika.api.routes import router
from didattika.api.dependencies import cleanup_services
from didattika.api.middleware import (
    request_validation_middleware,
    security_headers_middleware
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    logger = get_logger("startup")
    logger.info("Starting DIDATTIKA API", version=settings.app_version)

    yield

    # Shutdown
    logger.info("Shutting down DIDATTIKA API")
    await cleanup_services()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Educational platform: document processing, persona chat and teacher review",
    debug=settings.debug,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api")

# Add custom middleware
app.middleware("http")(security_headers_middleware)
app.middleware("http")(request_validation_middleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests."""
    logger = get_logger("http")
    start_time = time.time()

    # Log request
    logger.info(
        "HTTP request",
        method=request.method,
        url=str(request.url),
        client_ip=request.client.host if request.client else None
    )

    # Process request
    response = await call_next(request)

    # Log response
    process_time = time.time() - start_time
    logger.info(
        "HTTP response",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=process_time
    )

    return response


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to DIDATTIKA API",
        "version": settings.app_version,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": settings.app_version
    }


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are reported as 400 with the first problem found."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location}: {first.get('msg')}" if location else f"Invalid request: {first.get('msg')}"
    else:
        message = "Invalid request"

    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(DidattikaError)
async def domain_exception_handler(request: Request, exc: DidattikaError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    log_error(exc, {"url": str(request.url), "method": request.method})

    content = {"error": "Internal server error"}
    if settings.debug:
        content["message"] = str(exc)

    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "didattika.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
