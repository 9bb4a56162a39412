"""
FastAPI routers for the join service.
"""

from app.routers import health, join_video

__all__ = ["health", "join_video"]
