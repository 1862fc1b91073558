"""
Common API models used across different endpoints.

These models represent shared concepts like errors and health responses.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from src.utils.image_converter import is_image_reference


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_image_reference(value: Optional[str]) -> Optional[str]:
    """Image fields take http(s) urls or data uris, nothing that could name a server file."""
    if value is None:
        return value
    if not is_image_reference(value):
        raise ValueError("must be an http(s) URL or a data URI")
    return value


class CamelModel(BaseModel):
    """Accepts both camelCase (what the frontend sends) and snake_case field names."""
    model_config = ConfigDict(populate_by_name=True)


class APIError(BaseModel):
    """Standard error response format."""
    error: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Machine-readable error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=_utcnow)


class HealthStatus(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    uptime: float = Field(..., description="Uptime in seconds")
    dependencies: Dict[str, str] = Field(..., description="Status of external dependencies")
