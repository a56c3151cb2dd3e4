import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from kirakira.core.timezone import utcnow
from kirakira.db.database import Base
from kirakira.models.user import new_id

MAX_CHARACTERS_PER_USER = 5


class Visibility(str, enum.Enum):
    PRIVATE = "PRIVATE"
    LINK_ONLY = "LINK_ONLY"
    PUBLIC = "PUBLIC"


class Character(Base):
    __tablename__ = "characters"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    personality = Column(Text, nullable=True)
    greeting = Column(Text, nullable=False)
    greetings = Column(Text, nullable=True)  # JSON list of alternative greetings
    secret = Column(Text, nullable=True)
    example_dialogs = Column(Text, nullable=True)  # JSON list of {"user", "char"} pairs
    visibility = Column(Enum(Visibility), nullable=False, default=Visibility.PRIVATE)
    profile_image = Column(String(500), nullable=True)
    album_images = Column(Text, nullable=True)  # JSON list of image URLs
    chat_count = Column(Integer, nullable=False, default=0)
    like_count = Column(Integer, nullable=False, default=0)
    creator_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    creator = relationship("User", back_populates="characters")
    conversations = relationship("Conversation", back_populates="character", cascade="all, delete-orphan")

    def is_visible_to(self, user_id) -> bool:
        return self.visibility != Visibility.PRIVATE or self.creator_id == user_id
