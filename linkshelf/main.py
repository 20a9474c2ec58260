"""LinkShelf Backend - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from linkshelf.api import api_router
from linkshelf.api.health import router as health_router
from linkshelf.core import (
    Base,
    async_session_maker,
    check_required_configuration,
    get_settings,
    setup_logging,
)
from linkshelf.core.config import Settings
from linkshelf.core.logging import get_logger
from linkshelf.middleware.auth_gate import (
    DOCS_PATHS,
    PUBLIC_EXACT_PATHS,
    PUBLIC_PATH_PREFIXES,
    AuthenticationGate,
    AuthGateMiddleware,
    database_user_lookup,
)

# Import all models to ensure they're registered with Base
from linkshelf.models import PasswordResetToken, User  # noqa: F401
from linkshelf.services.exceptions import StoreUnavailableError
from linkshelf.services.revocation import (
    InMemoryRevocationStore,
    RevocationStore,
    create_revocation_store,
)
from linkshelf.services.tokens import TokenCodec
from linkshelf.services.users import ResetLinkSender, log_reset_link

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


async def _revocation_purge_loop(store: InMemoryRevocationStore, interval_seconds: int) -> None:
    """Periodically drop expired entries from the in-memory revocation store."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = store.purge_expired()
        if removed > 0:
            logger.info(f"Purged {removed} expired revocation entries")


async def _create_tables(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        connection = await session.connection()
        await connection.run_sync(Base.metadata.create_all)
        await session.commit()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    await _create_tables(app.state.session_factory)

    tasks: list[asyncio.Task[None]] = []
    store: RevocationStore = app.state.revocation_store
    if isinstance(store, InMemoryRevocationStore):
        purge_task = asyncio.create_task(
            _revocation_purge_loop(store, settings.revocation_purge_interval_seconds),
            name="revocation-purge",
        )
        purge_task.add_done_callback(task_done_callback)
        tasks.append(purge_task)

    yield

    # Shutdown
    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    await store.close()


async def _store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Backing store unavailable for {request.method} {request.url.path}: {type(exc).__name__}")
    return JSONResponse(
        status_code=503,
        content={"detail": StoreUnavailableError.message},
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.setdefault(".".join(location) or "body", error.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "errors": errors},
    )


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    revocation_store: RevocationStore | None = None,
    reset_link_sender: ResetLinkSender | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Components default to the ones built from ``settings``; tests inject
    their own session factory and revocation store.
    """
    settings = settings or get_settings()
    check_required_configuration(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Bookmark manager API with token authentication",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    token_codec = TokenCodec(settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    if session_factory is None:
        session_factory = async_session_maker
    if revocation_store is None:
        revocation_store = create_revocation_store(settings)

    app.state.settings = settings
    app.state.token_codec = token_codec
    app.state.session_factory = session_factory
    app.state.revocation_store = revocation_store
    app.state.reset_link_sender = reset_link_sender or log_reset_link
    app.state.auth_gate = AuthenticationGate(
        token_codec,
        revocation_store,
        database_user_lookup(session_factory),
    )

    public_exact_paths = list(PUBLIC_EXACT_PATHS)
    if settings.debug:
        public_exact_paths.extend(DOCS_PATHS)
    if settings.enable_metrics:
        public_exact_paths.append("/metrics")

    # Every request outside the allow-list needs a valid bearer token
    app.add_middleware(
        AuthGateMiddleware,
        public_prefixes=PUBLIC_PATH_PREFIXES,
        public_exact_paths=public_exact_paths,
    )

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on ALL responses, including 401 from the gate.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
        ],
    )

    app.add_exception_handler(StoreUnavailableError, _store_unavailable_handler)
    app.add_exception_handler(OperationalError, _store_unavailable_handler)
    app.add_exception_handler(InterfaceError, _store_unavailable_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # Prometheus metrics (before routers so /metrics endpoint is registered first)
    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    # Include routers
    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
