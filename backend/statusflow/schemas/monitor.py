"""Monitor schemas for API."""
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

HTTP_METHOD_PATTERN = "^(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)$"


class MonitorCreate(BaseModel):
    """Schema for creating a new monitor."""
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1)
    http_method: str = Field(default="GET", pattern=HTTP_METHOD_PATTERN)
    timeout_ms: int = Field(default=10000, ge=100, le=120000)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    interval_seconds: int = Field(default=60, ge=10, le=3600)
    max_latency_ms: int = Field(default=500, ge=1)
    max_consecutive_failures: int = Field(default=3, ge=1)
    paused: bool = False


class MonitorUpdate(BaseModel):
    """Schema for updating a monitor. Only set fields are applied."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    url: Optional[str] = Field(None, min_length=1)
    http_method: Optional[str] = Field(None, pattern=HTTP_METHOD_PATTERN)
    timeout_ms: Optional[int] = Field(None, ge=100, le=120000)
    headers: Optional[Dict[str, str]] = None
    body: Optional[str] = None
    interval_seconds: Optional[int] = Field(None, ge=10, le=3600)
    max_latency_ms: Optional[int] = Field(None, ge=1)
    max_consecutive_failures: Optional[int] = Field(None, ge=1)


class MonitorResponse(BaseModel):
    """Schema for monitor in API responses."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    name: str
    url: str
    http_method: str
    timeout_ms: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None
    interval_seconds: int
    max_latency_ms: int
    max_consecutive_failures: int
    paused: bool
    last_checked_at: Optional[datetime] = None
    created_at: datetime
