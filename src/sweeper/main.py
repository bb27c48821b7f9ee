"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sweeper.admin.router import router as admin_router
from sweeper.config import get_settings
from sweeper.dependencies import close_redis, init_redis
from sweeper.health.router import router as health_router
from sweeper.leaderboard.router import router as leaderboard_router
from sweeper.middleware import setup_middleware


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_redis(settings.redis_url)

    yield

    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Minesweeper Leaderboard API",
        description="Anti-cheat leaderboard service for Minesweeper best times",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(leaderboard_router)
    app.include_router(admin_router)

    return app


app = create_app()
