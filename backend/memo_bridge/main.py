"""
Memo Bridge Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires Settings, one shared httpx.AsyncClient, MemoService,
       middleware, exception handlers and the catch-all route.
Who:   uvicorn (`uvicorn memo_bridge.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │  Middleware:  Request ID → Logging                  │
    │  Routes:      /{path} (OPTIONS 204, POST, else 405) │
    │  Errors:      MemoBridgeError → exc.status_code     │
    │               HTTPException   → 405 / its status   │
    │               Exception       → 502 Unknown error   │
    └─────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from memo_bridge import __version__
from memo_bridge.config import Settings, settings as default_settings
from memo_bridge.exceptions import MemoBridgeError, MethodNotAllowedError
from memo_bridge.middleware.logging import RequestLoggingMiddleware
from memo_bridge.middleware.request_id import RequestIDMiddleware, request_id_var
from memo_bridge.routes import memo
from memo_bridge.services.memo_service import MemoService
from memo_bridge.services.title import generate_title

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # httpx logs every request line at INFO, including URLs with project names
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Render errors as `{"error": message}`.

    Handler hierarchy:
        MemoBridgeError (and subclasses) → exc.status_code, exc.headers
        Starlette HTTPException          → 405 as MethodNotAllowedError, else its status
        Exception (fallback)             → 502 Unknown error

    Upstream details (status, body excerpt) are part of the message on
    purpose: the caller is the operator of this bridge.
    """

    @app.exception_handler(MemoBridgeError)
    async def handle_memo_bridge_error(request: Request, exc: MemoBridgeError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        """Routing errors raised by Starlette itself, e.g. a verb outside the route's list."""
        if exc.status_code == 405:
            return await handle_memo_bridge_error(request, MethodNotAllowedError(request.method))
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)

    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all. Stack trace goes to the log only."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(status_code=502, content={"error": "Unknown error"})


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    title_factory: Callable[[], str] = generate_title,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings:    Configuration; the environment-loaded default if omitted
        http_client: Client for Scrapbox calls. When omitted the app creates
                     one and closes it at shutdown; a supplied client is
                     left to its owner.
        title_factory: Page title source; the JST clock unless overridden
    """
    settings = settings or default_settings
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # ── Startup ───────────────────────────────────────────────────────
        setup_logging(settings.log_level)
        logger.info("Memo Bridge %s starting up...", __version__)
        try:
            settings.validate_required()
        except ValueError as e:
            # Keep serving: every request will get a 401 or 502 explaining itself
            logger.error("Configuration error: %s", str(e))
        logger.info(
            "Target project: %s (csrf_strategy=%s, import_encoding=%s)",
            settings.scrapbox_project or "<unset>",
            settings.csrf_strategy,
            settings.import_encoding,
        )
        logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

        yield

        # ── Shutdown ──────────────────────────────────────────────────────
        if owns_client:
            await client.aclose()
        logger.info("Shutdown complete.")

    app = FastAPI(
        title="Memo Bridge API",
        description="Creates a timestamped Scrapbox page from posted text.",
        version=__version__,
        # Every path belongs to the memo route; GET /docs must answer 405 too
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.memo_service = MemoService.from_settings(settings, client, title_factory)

    # Last added = outermost: RequestID wraps Logging
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(memo.router)

    return app


app = create_app()
