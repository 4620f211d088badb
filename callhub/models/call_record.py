from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String

from callhub.core.database import Base
from callhub.core.timeutils import utc_now


class CallRecord(Base):
    __tablename__ = "calls"

    id = Column(Integer, primary_key=True)
    # not unique: concurrent deliveries may create duplicates that get reconciled later
    vapi_call_id = Column(String(128), nullable=True, index=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=True, index=True)
    direction = Column(String(16), nullable=False, default="inbound")
    from_number = Column(String(64), nullable=False, default="unknown")
    to_number = Column(String(64), nullable=False, default="unknown")
    started_at = Column(DateTime, nullable=False, default=utc_now, index=True)
    duration = Column(Integer, nullable=False, default=0)
    cost = Column(Float, nullable=False, default=0.0)
    outcome = Column(String(64), nullable=True)
    ended_reason = Column(String(128), nullable=True)
    recording_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=True, onupdate=utc_now)
