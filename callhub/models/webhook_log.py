from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from callhub.core.database import Base
from callhub.core.timeutils import utc_now


class WebhookLog(Base):
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True)
    type = Column(String(100), nullable=False)
    payload = Column(JSON, nullable=True)
    processed = Column(Boolean, nullable=False, default=False)
    error = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, default=utc_now, index=True)
