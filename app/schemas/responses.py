"""
Response schemas for the join video API.

Field aliases keep the camelCase JSON shape the desktop client expects.
"""

from typing import Optional

from pydantic import BaseModel, Field


class JoinVideoData(BaseModel):
    """Payload of a successful join."""

    video_base64: str = Field(..., alias="videoBase64", description="Base64-encoded MP4 (H.264/AAC)")
    job_id: str = Field(..., alias="jobId", description="Join job identifier")
    size_bytes: int = Field(..., alias="sizeBytes", description="Size of the encoded MP4")
    clip_count: int = Field(..., alias="clipCount", description="Number of joined clips")

    class Config:
        populate_by_name = True


class JoinVideoResponse(BaseModel):
    """Successful join response."""

    success: bool = True
    message: str = "Videos joined successfully."
    data: JoinVideoData


class ErrorResponse(BaseModel):
    """Failed request response."""

    success: bool = False
    error: str = Field(..., description="Diagnostic message (includes ffmpeg output when relevant)")
    error_type: Optional[str] = Field(default=None, alias="errorType", description="Error class name")

    class Config:
        populate_by_name = True


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool = Field(..., description="Whether the service is ready to accept requests")
    ffmpeg: str = Field(..., description="ffmpeg binary status")
    ffprobe: str = Field(..., description="ffprobe binary status")
