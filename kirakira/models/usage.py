from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from kirakira.core.timezone import utcnow
from kirakira.db.database import Base


class UsageRecord(Base):
    """One successful chat completion, counted against the daily model quota."""
    __tablename__ = "api_usage"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    model = Column(String(50), nullable=False, index=True)
    used_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="usage_records")
