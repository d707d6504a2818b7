"""AlertRule model - a condition bound to notification channels."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship

from ..database import Base


class AlertType(str, enum.Enum):
    DOWNTIME = "downtime"
    LATENCY = "latency"
    STATUS_CODE = "status_code"
    SSL_EXPIRY = "ssl_expiry"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertRule(Base):
    """Alert rule. A NULL monitor_id applies to every monitor of the owner."""

    __tablename__ = "alert_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String, nullable=False, default=AlertType.DOWNTIME.value)
    severity = Column(String, nullable=False, default=AlertSeverity.HIGH.value)
    enabled = Column(Boolean, nullable=False, default=True)
    conditions = Column(JSON, nullable=False, default=dict)  # consecutiveFailures, latencyThreshold, statusCodes
    channels = Column(JSON, nullable=False, default=dict)  # email flag, webhook {enabled, url, headers}
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    monitor = relationship("Monitor", back_populates="alert_rules")
    history = relationship("AlertHistory", back_populates="alert_rule", cascade="all, delete-orphan")
