from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from idrac_gateway import __version__
from idrac_gateway.api.models import fail
from idrac_gateway.api.router import router as api_router
from idrac_gateway.auth import SessionAuthority, is_privileged_path
from idrac_gateway.config import GatewayConfig, LoggingConfig, load_gateway_config
from idrac_gateway.db import resolve_db_path
from idrac_gateway.db.users import initialize_store
from idrac_gateway.errors import (
    DuplicateUsernameError,
    PasswordHashError,
    PowerControlError,
    RegistrationClosedError,
    StorageError,
)
from idrac_gateway.redfish import PowerControlClient

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config: LoggingConfig) -> None:
    root = logging.getLogger()
    root.setLevel(config.level)
    formatter = logging.Formatter(LOG_FORMAT)

    # Avoid adding duplicate handlers if reloaded
    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    if config.file is not None and not any(
        isinstance(h, RotatingFileHandler) for h in root.handlers
    ):
        config.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=fail(code=code, message=message).model_dump(mode="json"),
    )


def create_app(
    config: GatewayConfig | None = None,
    *,
    power_client: PowerControlClient | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        gateway_config = config if config is not None else load_gateway_config()
        configure_logging(gateway_config.logging)

        logger.info("iDRAC gateway starting up")

        db_path = initialize_store(resolve_db_path(gateway_config))

        owns_client = power_client is None
        client = power_client or PowerControlClient.from_config(gateway_config.idrac)

        app.state.gateway_config = gateway_config
        app.state.db_path = db_path
        app.state.sessions = SessionAuthority.from_config(gateway_config.session)
        app.state.power_client = client

        try:
            yield
        finally:
            if owns_client:
                await client.aclose()

    app = FastAPI(title="iDRAC Gateway", version=__version__, lifespan=_lifespan)

    class _SessionAuthMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Request, call_next) -> Response:
            if not is_privileged_path(request.url.path):
                return await call_next(request)

            sessions = getattr(request.app.state, "sessions", None)
            if sessions is None:
                return _error(500, "internal_error", "Session authority not initialized")

            user_id = sessions.user_id_from_request(request)
            if user_id is None:
                return _error(401, "unauthorized", "Not authenticated")

            request.state.user_id = user_id
            return await call_next(request)

    app.add_middleware(_SessionAuthMiddleware)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=fail(
                code="validation_error",
                message="Request validation failed",
                details=exc.errors(),
            ).model_dump(mode="json"),
        )

    def _status_to_code(status_code: int) -> str:
        if status_code == 400:
            return "bad_request"
        if status_code == 401:
            return "unauthorized"
        if status_code == 403:
            return "forbidden"
        if status_code == 404:
            return "not_found"
        if status_code == 409:
            return "conflict"
        if status_code == 422:
            return "validation_error"
        if 400 <= status_code < 500:
            return "client_error"
        return "server_error"

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error(exc.status_code, _status_to_code(exc.status_code), str(exc.detail))

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return _error(
            exc.status_code,
            _status_to_code(exc.status_code),
            exc.detail if isinstance(exc.detail, str) else "HTTP error",
        )

    @app.exception_handler(RegistrationClosedError)
    async def _registration_closed_handler(
        request: Request, exc: RegistrationClosedError
    ) -> JSONResponse:
        return _error(403, "forbidden", str(exc))

    @app.exception_handler(DuplicateUsernameError)
    async def _duplicate_username_handler(
        request: Request, exc: DuplicateUsernameError
    ) -> JSONResponse:
        return _error(409, "conflict", "Username already exists")

    @app.exception_handler(PowerControlError)
    async def _power_control_error_handler(
        request: Request, exc: PowerControlError
    ) -> JSONResponse:
        return _error(502, "power_control_error", exc.message)

    @app.exception_handler(StorageError)
    async def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return _error(500, "storage_error", "Database error")

    @app.exception_handler(PasswordHashError)
    async def _password_hash_error_handler(
        request: Request, exc: PasswordHashError
    ) -> JSONResponse:
        logger.error("Password hashing failure on %s: %s", request.url.path, exc)
        return _error(500, "internal_error", "Password processing failed")

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Avoid leaking internals.
        logger.exception("Unhandled error on %s", request.url.path)
        return _error(500, "internal_error", "Internal server error")

    app.include_router(api_router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
