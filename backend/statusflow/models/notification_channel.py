"""NotificationChannel model - configured delivery targets."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON

from ..database import Base


class ChannelType(str, enum.Enum):
    EMAIL = "email"
    WEBHOOK = "webhook"
    SMS = "sms"
    SLACK = "slack"


class NotificationChannel(Base):
    """Delivery target with optional quiet hours."""

    __tablename__ = "notification_channels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    is_default = Column(Boolean, nullable=False, default=False)
    configuration = Column(JSON, nullable=False, default=dict)
    # {"enabled": true, "startTime": "22:00", "endTime": "08:00", "timezone": "UTC", "daysOfWeek": [0, 6]}
    quiet_hours = Column(JSON, nullable=True)
    last_test_at = Column(DateTime, nullable=True)
    last_test_success = Column(Boolean, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
