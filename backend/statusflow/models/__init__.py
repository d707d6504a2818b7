"""Database models."""
from .monitor import Monitor
from .check_result import CheckResult
from .alert_rule import AlertRule, AlertType, AlertSeverity
from .alert_history import AlertHistory, AlertStatus
from .notification_channel import NotificationChannel, ChannelType

__all__ = [
    "Monitor",
    "CheckResult",
    "AlertRule",
    "AlertType",
    "AlertSeverity",
    "AlertHistory",
    "AlertStatus",
    "NotificationChannel",
    "ChannelType",
]
