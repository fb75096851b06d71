"""FastAPI application entrypoint: lifespan, routers, middleware."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config import StoreBackend, get_settings
from app.database import build_engine, build_session_factory, create_tables
from app.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from app.middleware.rate_limit import RateLimitMiddleware
from app.routes import analytics, dashboard, entities, ws
from app.services.entity_store import EntityStore
from app.services.notifier import ChangeNotifier
from app.services.record_backends import MemoryRecordBackend, RecordBackend, SqlRecordBackend

logger = structlog.get_logger("farmlink")

SERVICE_NAME = "farmlink"
SERVICE_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup / shutdown lifecycle.

    Startup:
      1. Initialize structured logging
      2. Build the record backend (memory, or SQL tables via asyncpg)
      3. Build the change notifier and entity store, hydrate from the backend
      4. Connect to Redis when configured (rate limiting only)

    Shutdown:
      1. Close Redis connection pool
      2. Close the record backend and dispose the SQLAlchemy engine
    """
    settings = get_settings()
    configure_structured_logging(settings)
    logger.info(
        "farmlink_starting",
        log_level=settings.log_level,
        store_backend=settings.store_backend.value,
    )

    engine: AsyncEngine | None = None
    redis: Redis | None = None
    backend: RecordBackend = MemoryRecordBackend()
    try:
        if settings.store_backend == StoreBackend.sql:
            engine = build_engine(settings.database_url)
            await create_tables(engine)
            backend = SqlRecordBackend(build_session_factory(engine))

        notifier = ChangeNotifier(queue_size=settings.notifier_queue_size)
        store = EntityStore(backend=backend, notifier=notifier)
        await store.hydrate()
        app.state.store = store

        if settings.redis_url:
            redis = Redis.from_url(settings.redis_url, decode_responses=True)
            await redis.ping()
        app.state.redis = redis
    except Exception as exc:
        logger.exception("startup_failure", error=str(exc))
        raise

    yield

    logger.info("farmlink_shutting_down")
    if redis is not None:
        await redis.aclose()
    await backend.close()
    if engine is not None:
        await engine.dispose()


app = FastAPI(
    title="FarmLink Supply API",
    description=(
        "Farm supply-chain coordination API: farmers, aggregators, orders, "
        "contracts and supply allocations, with derived analytics, role "
        "dashboards and a live change feed."
    ),
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── Middleware ──────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)


# ── Health check ────────────────────────────────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Basic health check: verifies the API process is alive."""
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }


# ── Router registration ────────────────────────────────────────────────────
for entity_router in entities.routers:
    app.include_router(entity_router, prefix="/api/v1")
app.include_router(analytics.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(ws.router)
