"""Monitor model - HTTP endpoints under continuous surveillance."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship

from ..database import Base


class Monitor(Base):
    """A probe target checked every `interval_seconds`."""

    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)  # Opaque owner id
    name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    http_method = Column(String, nullable=False, default="GET")
    timeout_ms = Column(Integer, nullable=False, default=10000)
    headers = Column(JSON, nullable=False, default=dict)
    body = Column(Text, nullable=True)
    interval_seconds = Column(Integer, nullable=False, default=60)  # 10-3600
    max_latency_ms = Column(Integer, nullable=False, default=500)
    max_consecutive_failures = Column(Integer, nullable=False, default=3)
    paused = Column(Boolean, nullable=False, default=False)
    last_checked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    check_results = relationship("CheckResult", back_populates="monitor", cascade="all, delete-orphan")
    alert_rules = relationship("AlertRule", back_populates="monitor", cascade="all, delete-orphan")
    alert_history = relationship("AlertHistory", back_populates="monitor", cascade="all, delete-orphan")
