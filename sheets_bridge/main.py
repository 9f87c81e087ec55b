"""Sheets Bridge server.

HTTP API that reads Google Sheets (service account or OAuth user credentials)
and posts summaries of fetched sheets to Slack.

Run with: python -m sheets_bridge.main
"""

import secrets
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from sheets_bridge import api
from sheets_bridge.config import Settings, get_settings
from sheets_bridge.dependencies import Services, build_services
from sheets_bridge.exceptions import SheetsBridgeError
from sheets_bridge.logging import clear_request_context, configure_logging, set_request_context


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID and logging context."""

    async def dispatch(self, request: Request, call_next):
        request_id = secrets.token_hex(8)
        set_request_context(request_id=request_id)

        logger.info(
            "Request started",
            extra={"method": request.method, "path": request.url.path},
        )

        try:
            response = await call_next(request)
            logger.info(
                "Request completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                },
            )
            return response
        except Exception:
            logger.exception("Request failed")
            raise
        finally:
            clear_request_context()


async def bridge_error_handler(request: Request, exc: SheetsBridgeError) -> JSONResponse:
    """Service errors that escaped an endpoint."""
    logger.warning(
        "Service error",
        extra={"path": request.url.path, "error": exc.message, "error_type": type(exc).__name__},
    )
    return api.error_response(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Invalid path or query parameters."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
        for error in exc.errors()
    )
    return api.error_response(400, "Invalid request parameters", details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unmatched routes and other framework HTTP errors."""
    if exc.status_code == 404:
        return api.error_response(404, "Endpoint not found")
    return api.error_response(exc.status_code, str(exc.detail))


def _unhandled_exception_handler(settings: Settings):
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global handler for unhandled exceptions."""
        logger.exception(
            "Unhandled exception",
            extra={"path": request.url.path, "error": str(exc)},
        )
        details = str(exc) if settings.is_development else None
        return api.error_response(500, "Something went wrong!", details)

    return unhandled_exception_handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: Settings = app.state.settings

    logger.info(
        "Starting Sheets Bridge server",
        extra={"port": settings.port, "environment": settings.environment},
    )

    # Services injected by create_app (tests) are kept as-is
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)
        logger.info("Services initialized")

    yield

    logger.info("Shutting down Sheets Bridge server")


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Raises a pydantic ValidationError when settings come from the environment
    and no Google credential path is configured.
    """
    settings = settings or get_settings()

    configure_logging(
        is_production=settings.is_production,
        log_level="DEBUG" if settings.debug else settings.log_level,
    )

    app = FastAPI(
        title="Sheets Bridge",
        description="Google Sheets reader with Slack notifications",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
    )
    app.state.settings = settings
    app.state.services = services

    # Exception handlers
    app.add_exception_handler(SheetsBridgeError, bridge_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, validation_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        StarletteHTTPException, http_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, _unhandled_exception_handler(settings))

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router)

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "sheets_bridge.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
    )
