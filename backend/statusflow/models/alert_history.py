"""AlertHistory model - audit trail of rule firings."""
import enum
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from ..database import Base


class AlertStatus(str, enum.Enum):
    TRIGGERED = "triggered"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class AlertHistory(Base):
    """One firing of one rule against one check result.

    Lifecycle: triggered -> acknowledged -> resolved, or triggered -> resolved.
    """

    __tablename__ = "alert_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    alert_rule_id = Column(Integer, ForeignKey("alert_rules.id", ondelete="CASCADE"), nullable=False)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=True)
    status = Column(String, nullable=False, default=AlertStatus.TRIGGERED.value)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    alert_metadata = Column("metadata", JSON, nullable=True)
    channels_notified = Column(JSON, nullable=False, default=dict)
    triggered_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    acknowledged_at = Column(DateTime, nullable=True)
    acknowledged_by = Column(String, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    alert_rule = relationship("AlertRule", back_populates="history")
    monitor = relationship("Monitor", back_populates="alert_history")
