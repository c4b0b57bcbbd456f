# src/transcribe_relay/main.py
"""Main entry point for the transcription relay."""

from __future__ import annotations

import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from transcribe_relay import __version__
from transcribe_relay.api import live_router, pages_router, session_router, system_router
from transcribe_relay.core.errors import AuthenticationError, ConfigurationError
from transcribe_relay.core.logging import configure_logging
from transcribe_relay.core.settings import Settings, load_settings, resolve_signing_secret
from transcribe_relay.schemas.session import ErrorBody, ErrorDetail
from transcribe_relay.services.nonces import NonceStore, NonceSweeper
from transcribe_relay.services.tokens import SessionTokenService
from transcribe_relay.services.upstream import UpstreamConnector, websocket_connector

logger = logging.getLogger(__name__)

API_KEY_MISSING_HELP = """
ERROR: Upstream API key not found!

Please set your API key using one of these methods:

1. Create a .env file (recommended):
   UPSTREAM_API_KEY=your_api_key_here

2. Environment variable:
   export UPSTREAM_API_KEY=your_api_key_here

DEEPGRAM_API_KEY is accepted as an alias.
"""


def _read_index_template(dist_dir: str) -> str | None:
    index_path = Path(dist_dir) / "index.html"
    try:
        return index_path.read_text(encoding="utf-8")
    except OSError:
        # No built frontend (dev mode)
        return None


def _log_banner(app_settings: Settings) -> None:
    nonce_status = " (nonce required)" if app_settings.nonce_enforced else ""
    rule = "=" * 70
    logger.info(rule)
    logger.info("Backend API Server running at http://localhost:%d", app_settings.port)
    logger.info("GET  /api/session%s", nonce_status)
    logger.info("WS   /api/live-transcription (auth required)")
    logger.info("GET  /api/metadata")
    logger.info(rule)


def create_app(
    app_settings: Settings | None = None,
    *,
    upstream_connector: UpstreamConnector = websocket_connector,
) -> FastAPI:
    """Build the relay application.

    Args:
        app_settings: Settings to build with; loaded from the environment if omitted.
        upstream_connector: Callable used to dial the upstream service.
    """
    app_settings = app_settings or load_settings()

    app = FastAPI(
        title=app_settings.app_name,
        description="Authenticated WebSocket relay for streaming speech recognition",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    nonce_store = NonceStore(app_settings.nonce_ttl_seconds)
    app.state.settings = app_settings
    app.state.nonce_store = nonce_store
    app.state.nonce_sweeper = NonceSweeper(nonce_store, app_settings.nonce_sweep_interval_seconds)
    app.state.token_service = SessionTokenService(
        resolve_signing_secret(app_settings),
        nonce_required=app_settings.nonce_enforced,
        ttl_seconds=app_settings.session_token_ttl_seconds,
        algorithm=app_settings.jwt_algorithm,
    )
    app.state.upstream_connector = upstream_connector
    app.state.index_template = _read_index_template(app_settings.frontend_dist_dir)

    cors_headers = app_settings.cors_headers

    @app.middleware("http")
    async def apply_cors(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.method == "OPTIONS":
            return Response(status_code=204, headers=cors_headers)
        response = await call_next(request)
        response.headers.update(cors_headers)
        return response

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content=ErrorBody(
                error=ErrorDetail(type="AuthenticationError", code=exc.code, message=exc.message)
            ).model_dump(),
        )

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content={"error": "INTERNAL_SERVER_ERROR", "message": exc.message},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> Response:
        # Unknown paths and unsupported methods on known paths are both "not found".
        if exc.status_code in (404, 405):
            return JSONResponse(
                status_code=404,
                content={"error": "Not Found", "message": "Endpoint not found"},
            )
        return await http_exception_handler(request, exc)

    app.include_router(pages_router)
    app.include_router(session_router, prefix="/api")
    app.include_router(live_router, prefix="/api")
    app.include_router(system_router, prefix="/api")

    assets_dir = Path(app_settings.frontend_dist_dir) / "assets"
    if assets_dir.is_dir():
        app.mount("/assets", StaticFiles(directory=assets_dir), name="assets")

    @app.on_event("startup")
    async def on_startup() -> None:
        if not app_settings.nonce_enforced:
            logger.warning(
                "Session nonce enforcement is disabled; any caller can obtain a session token"
            )
        await app.state.nonce_sweeper.start()
        _log_banner(app_settings)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.nonce_sweeper.stop()

    return app


def run() -> None:
    """Console entry point: load settings, then serve with uvicorn."""
    try:
        app_settings = load_settings()
    except ValidationError as exc:
        configure_logging()
        missing = {
            str(error["loc"][0]) for error in exc.errors() if error.get("type") == "missing"
        }
        if "UPSTREAM_API_KEY" in missing or "upstream_api_key" in missing:
            logger.error(API_KEY_MISSING_HELP)
        else:
            logger.error("Invalid configuration: %s", exc)
        sys.exit(1)

    configure_logging(app_settings.log_level, app_settings.log_format)

    import uvicorn

    uvicorn.run(
        create_app(app_settings),
        host=app_settings.host,
        port=app_settings.port,
        log_level=app_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
