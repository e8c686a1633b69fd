"""Pydantic schemas for upload endpoints."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from storage.types import UploadOutcome


class UploadResponse(BaseModel):
    """Response model for chunk and simple uploads."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    error: Optional[str] = None
    code: Optional[str] = None
    prevent_retry: Optional[bool] = Field(default=None, alias="preventRetry")

    @classmethod
    def from_outcome(cls, outcome: UploadOutcome) -> "UploadResponse":
        return cls(
            success=outcome.success,
            error=outcome.error,
            code=outcome.code,
            prevent_retry=True if outcome.prevent_retry else None,
        )

    def to_body(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class HealthResponse(BaseModel):
    """Response model for the liveness probe."""
    status: str
    service: str
