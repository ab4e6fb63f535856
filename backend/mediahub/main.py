"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mediahub.core.config import settings
from mediahub.core.database import engine
from mediahub.core.logging import setup_logging
from mediahub.core.middleware import CorrelationIdMiddleware
from mediahub.modules.media.router import router as media_router
from mediahub.modules.transcoding.service import wait_for_running_jobs

setup_logging(
    level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    json_format=settings.LOG_JSON,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let inline jobs report before the engine goes away
    await wait_for_running_jobs()
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Media derivatives: thumbnails, video quality ladders and playback resolution.",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "health",
            "description": "Health check endpoints",
        },
        {
            "name": "media",
            "description": "Media derivatives - playback quality, processing status, reprocessing",
        },
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(media_router, prefix=settings.API_V1_PREFIX)


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}
