from sqlalchemy import Column, DateTime, Integer, String

from callhub.core.database import Base
from callhub.core.timeutils import utc_now


class Agent(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    vapi_assistant_id = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
