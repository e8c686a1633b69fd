"""Pydantic schemas for API responses."""

from server.schemas.uploads import HealthResponse, UploadResponse

__all__ = [
    "HealthResponse",
    "UploadResponse",
]
