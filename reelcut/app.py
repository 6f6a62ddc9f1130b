"""FastAPI application factory: entry point for the billing API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from reelcut.config import get_settings
from reelcut.routers import account, admin, billing, webhooks
from reelcut.utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # Auto-create tables for SQLite (dev mode); PostgreSQL uses Alembic
    from reelcut.db.session import engine
    from reelcut.models import Base

    settings = get_settings()
    if settings.database_url.startswith("sqlite"):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    # Initialize third-party API keys once at startup
    if settings.stripe_secret_key:
        from reelcut.services.stripe_gateway import init_stripe
        init_stripe()
    if settings.resend_api_key:
        import resend
        resend.api_key = settings.resend_api_key

    yield

    await engine.dispose()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(verbose=settings.debug)

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = settings

    # --- Error handlers ---
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    # --- Routers ---
    app.include_router(webhooks.router)
    app.include_router(billing.router)
    app.include_router(account.router)
    app.include_router(admin.router)

    return app


app = create_app()
