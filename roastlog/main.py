"""FastAPI application entrypoint — lifespan, routers, middleware."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from sqlalchemy import text

from roastlog.config import Settings, StoreBackend, get_settings
from roastlog.database import async_session_factory, engine
from roastlog.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from roastlog.routes import auth, notices, profiles, session, ws
from roastlog.services.document_store import DocumentStore, InMemoryDocumentStore
from roastlog.services.identity import (
    InMemoryUserDirectory,
    PasswordIdentityProvider,
    SqlUserDirectory,
    UserDirectory,
)
from roastlog.services.sql_document_store import SqlDocumentStore
from roastlog.services.workspace import RoastWorkspace

logger = structlog.get_logger("roastlog")


async def _bootstrap_user(directory: UserDirectory, settings: Settings) -> bool:
    """Create the configured station operator if it does not exist yet."""
    email = settings.bootstrap_user_email
    password = settings.bootstrap_user_password
    if not email or not password:
        return False
    if await directory.find_by_email(email) is not None:
        return False
    await directory.register(email, password, settings.bootstrap_user_display_name)
    logger.info("bootstrap_user_created", email=email)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Connect the remote document store (PostgreSQL + Redis, or in-memory)
      3. Create the bootstrap operator account if configured
      4. Build the workspace (identity gate, profile store, active session)

    Shutdown:
      1. Cancel the stopwatch and the live profile feed
      2. Close Redis connection pool and dispose SQLAlchemy engine
    """
    settings = get_settings()
    configure_structured_logging(settings)
    logger.info(
        "roastlog starting",
        store_backend=settings.store_backend.value,
        log_level=settings.log_level,
    )

    redis: Redis | None = None
    remote: DocumentStore
    directory: UserDirectory
    try:
        if settings.store_backend == StoreBackend.sql:
            async with engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
            await redis.ping()
            app.state.redis = redis
            remote = SqlDocumentStore(
                async_session_factory,
                redis,
                poll_seconds=settings.change_feed_poll_seconds,
            )
            directory = SqlUserDirectory(async_session_factory)
        else:
            remote = InMemoryDocumentStore()
            directory = InMemoryUserDirectory()

        await _bootstrap_user(directory, settings)
    except Exception as exc:
        logger.exception("startup failure", error=str(exc))
        raise

    workspace = RoastWorkspace(
        remote,
        PasswordIdentityProvider(directory),
        tick_interval=settings.stopwatch_tick_seconds,
    )
    app.state.workspace = workspace

    yield

    logger.info("roastlog shutting down")
    await workspace.aclose()
    app.state.workspace = None
    if redis is not None:
        await redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="Roastlog API",
    description=(
        "Coffee roast logging — stage a roast, time it, log temperatures, "
        "and keep a live, per-user collection of finished roast profiles."
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check — verifies the API process is alive."""
    return {
        "status": "ok",
        "service": "roastlog",
        "version": "0.1.0",
    }


# ── Router registration ────────────────────────────────────────────────────
app.include_router(auth.router, prefix="/api/v1")
app.include_router(profiles.router, prefix="/api/v1")
app.include_router(session.router, prefix="/api/v1")
app.include_router(notices.router, prefix="/api/v1")
app.include_router(ws.router)
