import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from kirakira.core.timezone import utcnow
from kirakira.db.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    # bcrypt hash; empty for accounts created through OAuth
    password = Column(String(255), nullable=False, default="")
    name = Column(String(100), nullable=False)
    name_changed = Column(Boolean, nullable=False, default=False)
    avatar = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    characters = relationship("Character", back_populates="creator", cascade="all, delete-orphan")
    conversations = relationship("Conversation", back_populates="user", cascade="all, delete-orphan")
    usage_records = relationship("UsageRecord", back_populates="user", cascade="all, delete-orphan")
