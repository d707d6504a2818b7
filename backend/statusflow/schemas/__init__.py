"""Pydantic schemas for API request/response models."""
from .monitor import (
    MonitorCreate,
    MonitorUpdate,
    MonitorResponse,
)
from .alert import (
    AlertConditions,
    AlertChannels,
    WebhookConfig,
    ChannelConfiguration,
    QuietHours,
    AlertMetadata,
    AlertHistoryResponse,
    ChannelTestResponse,
)
from .metrics import (
    MetricsBucket,
    MetricsSummary,
    MonitorMetrics,
)

__all__ = [
    "MonitorCreate",
    "MonitorUpdate",
    "MonitorResponse",
    "AlertConditions",
    "AlertChannels",
    "WebhookConfig",
    "ChannelConfiguration",
    "QuietHours",
    "AlertMetadata",
    "AlertHistoryResponse",
    "ChannelTestResponse",
    "MetricsBucket",
    "MetricsSummary",
    "MonitorMetrics",
]
