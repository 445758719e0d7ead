"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from photo_studio.api.routes import router as api_router
from photo_studio.app_logging import configure_logging
from photo_studio.containers import AppContainer
from photo_studio.services.errors import (
    AssetNotFoundError,
    PhotoStudioError,
    SessionBusyError,
    SessionNotFoundError,
    ValidationError,
)

_ERROR_STATUS: dict[type[PhotoStudioError], int] = {
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    AssetNotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    SessionBusyError: status.HTTP_409_CONFLICT,
}

_LOCATIONS = frozenset({"body", "query", "path", "header"})


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        enabled = app.state.container.registry.enabled_names()
        logger.info("Photo studio ready: providers=%s", enabled)
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(api_router)

    @app.exception_handler(PhotoStudioError)
    async def handle_service_error(
        request: Request, exc: PhotoStudioError
    ) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Unhandled service error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _describe_validation_error(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in _LOCATIONS]
    message = first.get("msg", "invalid value")
    if not location:
        return f"Invalid request: {message}"
    return f"Invalid request: {'.'.join(location)}: {message}"


def _status_for(exc: PhotoStudioError) -> int:
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR
