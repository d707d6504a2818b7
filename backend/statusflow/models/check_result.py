"""CheckResult model - append-only probe outcomes."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, JSON, Index
from sqlalchemy.orm import relationship

from ..database import Base


class CheckResult(Base):
    """Outcome of one probe. Never updated once written."""

    __tablename__ = "check_results"
    __table_args__ = (
        Index("ix_check_results_monitor_created", "monitor_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False)
    status_code = Column(Integer, nullable=False, default=0)  # 0 on transport failure
    response_time_ms = Column(Integer, nullable=False, default=0)
    is_up = Column(Boolean, nullable=False)
    error_message = Column(String, nullable=True)
    error_kind = Column(String, nullable=True)  # timeout, dns-failure, connection-refused, ...
    response_headers = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationship
    monitor = relationship("Monitor", back_populates="check_results")
