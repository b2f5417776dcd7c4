"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reqai import __version__
from reqai.api.deps import container
from reqai.api.v1 import backlog, chat, extraction, health, jira
from reqai.core.config import settings
from reqai.core.constants import API_PREFIX
from reqai.core.exceptions import ReqAIError
from reqai.core.logging import bind_context, clear_context, get_logger, setup_logging
from reqai.core.security import generate_request_id

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info(
        "Starting ReqAI",
        app_name=settings.app_name,
        env=settings.app_env,
    )

    container.initialize()
    logger.info("Service container initialized")

    yield

    logger.info("Shutting down ReqAI")
    await container.shutdown()


# Create FastAPI application
app = FastAPI(
    title="ReqAI API",
    description="Requirements extraction, conversational analysis and Jira backlog generation",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Tag every log line of a request with its ID."""
    clear_context()
    request_id = generate_request_id()
    bind_context(request_id=request_id, path=request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Exception handlers
@app.exception_handler(ReqAIError)
async def reqai_error_handler(
    request: Request,
    exc: ReqAIError,
) -> JSONResponse:
    """Handle custom application errors."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application error",
        error_code=exc.code,
        error_message=exc.message,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected errors."""
    logger.exception(
        "Unexpected error",
        error=str(exc),
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# Include routers
app.include_router(health.router, prefix=API_PREFIX, tags=["Health"])
app.include_router(extraction.router, prefix=API_PREFIX, tags=["Extraction"])
app.include_router(chat.router, prefix=API_PREFIX, tags=["Chat"])
app.include_router(jira.router, prefix=API_PREFIX, tags=["Jira"])
app.include_router(backlog.router, prefix=API_PREFIX, tags=["Backlog"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else "Disabled in production",
    }


# API info endpoint
@app.get("/api")
async def api_info() -> dict[str, Any]:
    """API information endpoint."""
    return {
        "name": "ReqAI API",
        "version": __version__,
        "prefix": API_PREFIX,
        "endpoints": {
            "health": f"{API_PREFIX}/health",
            "extraction": f"{API_PREFIX}/extraction",
            "chat": f"{API_PREFIX}/chat",
            "jira": f"{API_PREFIX}/jira",
            "backlog": f"{API_PREFIX}/backlog",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "reqai.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
