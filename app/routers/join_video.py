"""
Join Video API Router - joins base64 clips into one MP4 with transitions.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.schemas.requests import JoinVideoRequestBody, MediaPayload
from app.schemas.responses import ErrorResponse, JoinVideoData, JoinVideoResponse
from app.services.errors import JoinVideoError, ValidationError
from app.services.job_workspace import JoinVideoRequest, MediaInput, WatermarkInput
from app.services.join_video_pipeline import JoinVideoPipeline
from app.services.usage_meter import UsageRecorder, get_usage_recorder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Join Video"])


# ============================================================================
# Dependencies
# ============================================================================


async def get_join_pipeline(request: Request) -> JoinVideoPipeline:
    """Get the join pipeline from app state (initialized at startup)."""
    pipeline = getattr(request.app.state, "join_pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Join pipeline not initialized",
        )
    return pipeline


async def get_recorder(request: Request) -> UsageRecorder:
    """Get the usage recorder from app state, falling back to the process default."""
    return getattr(request.app.state, "usage_recorder", None) or get_usage_recorder()


def _to_media_input(payload: MediaPayload | None) -> MediaInput | None:
    if payload is None:
        return None
    return MediaInput(data=payload.data, name=payload.name)


def to_join_request(body: JoinVideoRequestBody) -> JoinVideoRequest:
    """Convert the API body into the pipeline request."""
    watermark = None
    if body.watermark is not None:
        watermark = WatermarkInput(
            data=body.watermark.data,
            name=body.watermark.name,
            position=body.watermark.position,
            opacity=body.watermark.opacity,
            width=body.watermark.width,
        )

    return JoinVideoRequest(
        videos=[MediaInput(data=video.data, name=video.name) for video in body.videos],
        voice=_to_media_input(body.voice),
        backsound=_to_media_input(body.backsound),
        use_backsound=body.use_backsound,
        watermark=watermark,
        transition_duration=body.transition_duration,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/join-video",
    response_model=JoinVideoResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def join_video(
    body: JoinVideoRequestBody,
    pipeline: JoinVideoPipeline = Depends(get_join_pipeline),
    recorder: UsageRecorder = Depends(get_recorder),
):
    """
    Join clips into one video with cross-fade transitions.

    Optional narration and background music are mixed under the clip audio,
    and an optional watermark is overlaid. The request blocks until the
    encode finishes and returns the MP4 as base64.
    """
    logger.info(f"Join video request: {len(body.videos)} videos")
    if body.watermark:
        logger.info(f"Watermark: {body.watermark.position}, {body.watermark.opacity}%")

    request = to_join_request(body)

    try:
        result = await pipeline.join(request)
    except ValidationError as e:
        return _error_response(status.HTTP_400_BAD_REQUEST, e)
    except JoinVideoError as e:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, e)

    recorder.record_usage("join_video", 1)
    recorder.record_usage("join_video_clips", result.clip_count)

    return JoinVideoResponse(
        data=JoinVideoData(
            video_base64=result.video_base64,
            job_id=result.job_id,
            size_bytes=result.file_size_bytes,
            clip_count=result.clip_count,
        ),
    )


def _error_response(status_code: int, error: JoinVideoError) -> JSONResponse:
    body = ErrorResponse(error=str(error), error_type=type(error).__name__)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))
