"""
Gaming Marketplace API — application entry point.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.errors import register_exception_handlers
from api.middleware import register_middleware
from auth.routes import router as auth_router
from catalog.categories import router as categories_router
from catalog.games import router as games_router
from catalog.listings import router as listings_router
from config.settings import config
from database.helpers import init_db, ping_database

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "sqlalchemy.engine", "aiosqlite", "asyncio"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Gaming Marketplace API",
        version="1.0.0",
        description="Games, categories and listings with bearer-token auth.",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes
    app.include_router(auth_router, prefix="/api/auth")
    app.include_router(games_router, prefix="/api/games")
    app.include_router(categories_router, prefix="/api/categories")
    app.include_router(listings_router, prefix="/api")

    @app.get("/", tags=["health"])
    async def root():
        return {
            "message": "Gaming Marketplace API",
            "status": "running",
            "timestamp": _now(),
        }

    @app.get("/db-test", tags=["health"])
    async def db_test():
        try:
            await ping_database()
        except Exception as exc:
            logger.exception("Database connectivity check failed")
            return JSONResponse(
                status_code=500,
                content={
                    "message": "Database connection failed",
                    "status": "disconnected",
                    "error": type(exc).__name__,
                    "timestamp": _now(),
                },
            )
        return {
            "message": "Database connection successful",
            "status": "connected",
            "timestamp": _now(),
        }

    @app.on_event("startup")
    async def on_startup():
        if config.create_schema_on_startup:
            logger.info("Ensuring database schema…")
            await init_db()
        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
