"""
FastAPI application entry point for the video join service.

The service joins short clips into one portrait video:
1. Audio repair for clips without an audio stream
2. Cross-fade transitions between clips
3. Narration / background music mixing
4. Watermark overlay
"""

import logging
import os
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.routers import health, join_video
from app.schemas.responses import ErrorResponse
from app.services.ffmpeg_runner import FFmpegRunner
from app.services.join_video_pipeline import JoinVideoPipeline
from app.services.usage_meter import get_usage_recorder

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Builds the join pipeline on startup and cleans the workspace root on shutdown.
    """
    settings = get_settings()
    logger.info("Starting video join service...")

    os.makedirs(settings.workspace_root, exist_ok=True)
    logger.info(f"Workspace root: {settings.workspace_root}")
    logger.info(f"Max probe workers: {settings.max_probe_workers}")

    runner = FFmpegRunner()
    _verify_external_tools(runner)

    # Store in app state for dependency injection
    app.state.join_pipeline = JoinVideoPipeline(runner=runner)
    app.state.usage_recorder = get_usage_recorder()

    logger.info("Join service ready to accept requests.")

    yield

    # Cleanup on shutdown
    logger.info("Shutting down video join service...")
    app.state.join_pipeline = None

    # Job workspaces are removed per job; this only catches leftovers from crashes
    if os.path.isdir(settings.workspace_root):
        try:
            shutil.rmtree(settings.workspace_root)
        except OSError as e:
            logger.warning(f"Failed to clean up workspace root: {e}")

    logger.info("Shutdown complete")


def _verify_external_tools(runner: FFmpegRunner):
    """Verify that required external tools are available."""
    descriptions = {
        "ffmpeg": "FFmpeg for joining and audio repair",
        "ffprobe": "FFprobe for duration probing",
    }

    for tool, available in runner.tools_available().items():
        if available:
            logger.info(f"✓ {descriptions[tool]} available")
        else:
            logger.warning(f"✗ {descriptions[tool]} NOT FOUND - join requests will fail")


# Create FastAPI application
app = FastAPI(
    title="Video Join Service",
    description="""
Joins short clips into one seamless portrait video.

## Features

### Join API (`/api/join-video`)
- Clips normalized to 720x1280 @ 30 fps (fit and pad)
- Cross-fade video and audio transitions
- Silent track added to clips without audio
- Optional narration and background music mix
- Optional watermark with opacity and anchor position
- MP4 (H.264 / AAC) returned as base64
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies in the same shape as pipeline validation errors."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    body = ErrorResponse(error=f"Invalid request: {details}", error_type="ValidationError")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(by_alias=True))


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(join_video.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    settings = get_settings()
    return {
        "service": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "features": {
            "join_video": "Cross-fade join + audio mix + watermark",
        },
        "docs": "/docs",
    }
