"""
AI Gateway - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import chat_router, health_router
from .api.deps import Services, init_services
from .cache import CacheBackend, MemoryCacheBackend, ResponseCache
from .config import Settings, settings
from .core.chat_service import ChatService
from .core.context_window import ContextWindow
from .core.exceptions import SessionNotFound
from .core.logging_config import setup_logging
from .core.session_manager import SessionManager
from .core.sweeper import SessionSweeper
from .inference import InferenceClient
from .middleware import RequestLoggingMiddleware
from .models import ErrorResponse
from .storage import LocalStorage, SessionRepository

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


def build_services(
    config: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    cache_backend: Optional[CacheBackend] = None,
) -> Services:
    """
    Wire the service graph from settings.

    Args:
        config: Application settings
        transport: Optional httpx transport for the inference client
        cache_backend: Cache backend (an in-memory one if not given)

    Returns:
        Services: The wired services
    """
    repository = SessionRepository(LocalStorage(config.local_storage_path))
    cache = ResponseCache(
        cache_backend or MemoryCacheBackend(),
        response_ttl_seconds=config.response_cache_ttl_seconds,
        session_ttl_seconds=config.session_cache_ttl_seconds,
    )
    context_window = ContextWindow(token_budget=config.context_token_budget)
    inference_client = InferenceClient.from_settings(config, transport=transport)

    session_manager = SessionManager(
        repository,
        cache,
        context_window,
        default_max_context_window=config.default_max_context_window,
    )
    chat_service = ChatService(
        session_manager,
        cache,
        context_window,
        inference_client,
        mode=config.inference_mode,
    )
    return Services(
        session_manager=session_manager,
        chat_service=chat_service,
        inference_client=inference_client,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    services = build_services(settings)
    init_services(services)
    logger.info("Services initialized")

    sweeper = SessionSweeper(
        services.session_manager,
        interval_seconds=settings.session_cleanup_interval_seconds,
        expiry_hours=settings.session_expiry_hours,
        enabled=settings.session_cleanup_enabled,
    )
    await sweeper.start()

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Storage path: {settings.local_storage_path}")
    logger.info(f"Inference service: {settings.inference_base_url}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    await sweeper.stop()
    await services.inference_client.close()
    init_services(None)
    logger.info(f"Shutting down {settings.app_name}")


def _error_body(request: Request, status_code: int, message: str) -> dict:
    return ErrorResponse(
        error=HTTPStatus(status_code).phrase,
        message=message,
        path=request.url.path,
        status=status_code,
    ).model_dump()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Session-aware gateway in front of the AI inference service",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(chat_router)
app.include_router(health_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400)."""
    messages = []
    for error in exc.errors():
        msg = str(error.get("msg", "Invalid request"))
        messages.append(msg.removeprefix("Value error, "))
    message = "; ".join(messages) or "Invalid request"
    logger.warning(f"Rejected request {request.url.path}: {message}")
    return JSONResponse(status_code=400, content=_error_body(request, 400, message))


@app.exception_handler(SessionNotFound)
async def session_not_found_handler(request: Request, exc: SessionNotFound):
    logger.warning(f"Session not found: {exc.session_key}")
    return JSONResponse(status_code=404, content=_error_body(request, 404, str(exc)))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, str(exc.detail)),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything else is a 500 with a generic message; details stay in the log."""
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=_error_body(request, 500, "An unexpected error occurred"),
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "message": "AI Gateway - session-aware access to the AI inference service"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "aigateway.main:app",
        host="0.0.0.0",
        port=8080,
        reload=settings.debug
    )
