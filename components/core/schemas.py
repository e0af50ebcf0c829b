"""Core schemas shared by the API."""

from typing import Any, Dict

from pydantic import BaseModel, Field


class HealthCheck(BaseModel):
    """Schema for health check response."""
    service_name: str
    api_version: str
    status: str


class ErrorResponse(BaseModel):
    """Schema for domain error responses."""
    detail: str
    code: str
    context: Dict[str, Any] = Field(default_factory=dict)
