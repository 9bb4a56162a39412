"""
Pydantic schemas for request/response models.
"""

from app.schemas.requests import JoinVideoRequestBody, MediaPayload, WatermarkPayload
from app.schemas.responses import (
    ErrorResponse,
    HealthResponse,
    JoinVideoData,
    JoinVideoResponse,
    ReadinessResponse,
)

__all__ = [
    "JoinVideoRequestBody",
    "MediaPayload",
    "WatermarkPayload",
    "JoinVideoResponse",
    "JoinVideoData",
    "ErrorResponse",
    "HealthResponse",
    "ReadinessResponse",
]
