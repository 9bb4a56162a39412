"""
Health check endpoints for the join service.
"""

from fastapi import APIRouter, Request

from app.schemas.responses import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 while the process is up. Tool availability is reported by /health/ready.
    """
    return HealthResponse(
        status="healthy",
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Returns whether the join pipeline is initialized and both ffmpeg and
    ffprobe resolve.
    """
    pipeline = getattr(request.app.state, "join_pipeline", None)
    tools = pipeline.runner.tools_available() if pipeline is not None else {}

    ffmpeg_ready = tools.get("ffmpeg", False)
    ffprobe_ready = tools.get("ffprobe", False)

    return ReadinessResponse(
        ready=pipeline is not None and ffmpeg_ready and ffprobe_ready,
        ffmpeg="available" if ffmpeg_ready else "not_found",
        ffprobe="available" if ffprobe_ready else "not_found",
    )
