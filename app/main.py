import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from redis.asyncio import Redis

from app.cache.layer import CacheLayer
from app.core import responses
from app.core.config import Settings, get_settings
from app.core.errors import loop_exception_handler, register_exception_handlers
from app.core.logging import configure_logging
from app.database import (
    build_engine,
    build_session_factory,
    check_connection,
    create_db_and_tables,
)
from app.dependencies import CacheDep, SettingsDep
from app.middleware.auth import AuthMiddleware
from app.middleware.rate_limit import FixedWindowRateLimiter, RateLimitMiddleware
from app.routers import categories, products, redis_debug, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    configure_logging(settings)
    asyncio.get_running_loop().set_exception_handler(loop_exception_handler)

    cache = CacheLayer(settings, redis=app.state.redis_client)
    await cache.init_cache()

    engine = build_engine(settings)
    if settings.db_sync_models:
        await create_db_and_tables(engine)

    app.state.cache = cache
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    logger.info(f"{settings.app_name} {settings.app_version} started")

    yield

    # Close the cache before the engine
    await cache.close()
    await engine.dispose()
    logger.info("Database engine disposed")


def create_app(settings: Settings | None = None, redis: Redis | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Users, products and categories API with PostgreSQL, SQLModel and Redis",
        swagger_ui_parameters={"displayRequestDuration": True},
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.redis_client = redis

    register_exception_handlers(app)

    # Last added runs first: rate limiting wraps the auth gate
    app.add_middleware(AuthMiddleware, settings=settings)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=FixedWindowRateLimiter(
            window_seconds=settings.rate_limit_window_ms / 1000,
            max_requests=settings.rate_limit_max_requests,
        ),
    )

    # Include routers
    app.include_router(users.router)
    app.include_router(products.router)
    app.include_router(categories.router)
    app.include_router(redis_debug.router)

    @app.get("/")
    async def root(settings: SettingsDep):
        return responses.success(
            {
                "message": f"Welcome to {settings.app_name}",
                "server_time": datetime.now(timezone.utc).isoformat(),
                "version": settings.app_version,
                "docs": "/docs",
            },
            "welcome",
        )

    @app.get("/health")
    async def health_check(cache: CacheDep):
        database_ok = await check_connection(app.state.engine)
        cache_ok = await cache.ping()
        return responses.success(
            {
                "status": "healthy" if database_ok else "degraded",
                "database": "ok" if database_ok else "unavailable",
                "cache": "ok" if cache_ok else "unavailable",
                "cache_stats": cache.get_stats(),
            }
        )

    return app


app = create_app()
