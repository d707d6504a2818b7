"""Alert rule, history and channel schemas.

Rule conditions and channel configuration are stored as JSON. These models
parse them and accept both snake_case and the camelCase keys used by
existing API clients.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AlertConditions(CamelModel):
    """Type-specific thresholds of an alert rule."""
    consecutive_failures: Optional[int] = None  # Falsy means the default
    latency_threshold: Optional[int] = None
    status_codes: List[int] = Field(default_factory=list)
    ssl_days_before_expiry: Optional[int] = None


class WebhookConfig(CamelModel):
    enabled: bool = False
    url: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class SmsConfig(CamelModel):
    enabled: bool = False
    phone_numbers: List[str] = Field(default_factory=list)


class AlertChannels(CamelModel):
    """Channels an alert rule notifies when it fires."""
    email: bool = False
    webhook: Optional[WebhookConfig] = None
    sms: Optional[SmsConfig] = None  # Modeled but not wired into dispatch


class ChannelConfiguration(CamelModel):
    email_addresses: List[str] = Field(default_factory=list)
    webhook_url: Optional[str] = None
    webhook_headers: Dict[str, str] = Field(default_factory=dict)
    webhook_method: str = "POST"
    phone_numbers: List[str] = Field(default_factory=list)
    slack_webhook_url: Optional[str] = None
    slack_channel: Optional[str] = None


class QuietHours(CamelModel):
    enabled: bool = False
    start_time: str = "22:00"  # HH:MM local time
    end_time: str = "08:00"
    timezone: str = "UTC"
    days_of_week: Optional[List[int]] = None  # 0-6, Sunday-Saturday


class AlertMetadata(CamelModel):
    response_time: Optional[int] = None
    status_code: Optional[int] = None
    error_message: Optional[str] = None
    consecutive_failures: Optional[int] = None


class AlertHistoryResponse(BaseModel):
    """Alert history entry in API responses."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    alert_rule_id: int
    monitor_id: Optional[int] = None
    status: str
    title: str
    message: str
    alert_metadata: Optional[dict] = Field(None, serialization_alias="metadata")
    channels_notified: Dict[str, bool] = Field(default_factory=dict)
    triggered_at: datetime
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None


class ChannelTestResponse(BaseModel):
    success: bool
    message: str
