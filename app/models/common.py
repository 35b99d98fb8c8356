"""Common models used across the application."""
from typing import Any
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Overall health status")
    timestamp: str = Field(..., description="ISO timestamp")
    version: str = Field(..., description="Application version")
    dependencies: dict[str, str] = Field(
        ...,
        description="Status of each dependency"
    )


class ErrorResponse(BaseModel):
    """Uniform error body: ``error`` repeats ``code`` for older clients."""
    code: str
    message_user: str
    error: str
    correlation_id: str | None = None
    details: dict[str, Any] | None = None


class OkResponse(BaseModel):
    """Simple acknowledgement."""
    ok: bool = True
    count: int | None = None
