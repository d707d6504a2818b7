"""Services for checking, scheduling, and alerting."""
from .checker import CheckerService
from .scheduler import SchedulerService
from .alerter import AlerterService, AlertEvaluator
from .notifier import NotificationDispatcher
from .monitor_service import MonitorService

__all__ = [
    "CheckerService",
    "SchedulerService",
    "AlerterService",
    "AlertEvaluator",
    "NotificationDispatcher",
    "MonitorService",
]
