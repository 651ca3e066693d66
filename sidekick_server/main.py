"""Sidekick server.

Backend for the editor plugin: generates images with Adobe Firefly and swaps
them into Google Docs and Google Sheets.
"""

import secrets
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from sidekick_server import __version__, api
from sidekick_server.config import get_settings
from sidekick_server.cors import PreflightCORSMiddleware, cors_options
from sidekick_server.exceptions import SidekickError, UpstreamError
from sidekick_server.logging import configure_logging, request_id_ctx


class LoggingMiddleware(BaseHTTPMiddleware):
    """Assign a request id and log every request with its outcome."""

    async def dispatch(self, request: Request, call_next):
        token = request_id_ctx.set(secrets.token_hex(8))
        try:
            response = await call_next(request)
            logger.info(
                "{} {} -> {}",
                request.method,
                request.url.path,
                response.status_code,
                extra={"status_code": response.status_code},
            )
            return response
        finally:
            request_id_ctx.reset(token)


async def sidekick_error_handler(request: Request, exc: SidekickError) -> JSONResponse:
    """Map pipeline errors to their HTTP status with a ``message`` body."""
    extra = {"path": request.url.path, "error_type": type(exc).__name__}
    if isinstance(exc, UpstreamError):
        extra["upstream_status"] = exc.upstream_status
    if exc.status_code >= 500:
        logger.error("Request failed: {}", str(exc), extra=extra)
    else:
        logger.info("Request rejected: {}", str(exc), extra=extra)
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc)})


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed bodies as 400 instead of FastAPI's default 422."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        msg = error.get("msg", "invalid")
        problems.append(f"{location}: {msg}" if location else msg)
    message = "Invalid request body"
    if problems:
        message = f"{message}: " + "; ".join(problems)
    logger.info("Request rejected", extra={"path": request.url.path, "problems": problems})
    return JSONResponse(status_code=400, content={"message": message})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(f"Starting sidekick server on port {settings.port}")
    yield
    logger.info("Shutting down sidekick server")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    configure_logging(
        is_production=settings.is_production,
        log_level=settings.log_level,
    )

    app = FastAPI(
        title="Sidekick",
        description="Firefly image generation and Google Docs/Sheets image replacement",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
    )

    app.add_exception_handler(SidekickError, sidekick_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # CORS is outermost: the last middleware added wraps the others
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        PreflightCORSMiddleware,  # type: ignore[arg-type]
        **cors_options(settings),
    )

    app.include_router(api.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sidekick_server.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
    )
