"""FastAPI application factory and lifespan management."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from smclab.config import settings

API_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logger.info(f"Starting SMC Lab API (max {settings.max_candles} candles per request)...")
    yield
    logger.info("Shutting down SMC Lab API...")


def create_app() -> FastAPI:
    app = FastAPI(
        title="SMC Lab API",
        description="Smart Money Concepts structure analysis and chart indicators",
        version=API_VERSION,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": API_VERSION}

    # Include routers
    from smclab.api.charting import router as charting_router

    app.include_router(charting_router)

    return app
