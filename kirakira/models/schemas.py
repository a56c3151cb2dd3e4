from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from kirakira.models.character import Visibility
from kirakira.models.conversation import MessageRole


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, matching the frontend's JSON."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Auth schemas
# Required fields are validated in the routes so missing values map to 400
class RegisterRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class NameUpdateRequest(CamelModel):
    name: Optional[str] = None


class AvatarUploadRequest(CamelModel):
    image_data: Optional[str] = None


class UploadRequest(CamelModel):
    file: Optional[str] = None
    type: Optional[str] = None


# Character schemas
class CharacterPayload(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    personality: Optional[str] = None
    greeting: Optional[str] = None
    greetings: Optional[List[str]] = None
    secret: Optional[str] = None
    example_dialogs: Optional[List[Dict[str, str]]] = None
    visibility: Optional[Visibility] = None
    profile_image: Optional[str] = None
    album_images: Optional[List[str]] = None


class CharacterSummary(CamelModel):
    id: str
    name: str
    description: str
    profile_image: Optional[str] = None
    visibility: Visibility
    chat_count: int = 0
    like_count: int = 0
    created_at: datetime


class CreatorInfo(CamelModel):
    id: str
    name: str


class CharacterDetail(CharacterSummary):
    personality: Optional[str] = None
    greeting: str
    # JSON-serialized lists, returned exactly as stored
    greetings: Optional[str] = None
    secret: Optional[str] = None
    example_dialogs: Optional[str] = None
    album_images: Optional[str] = None
    creator_id: str
    updated_at: Optional[datetime] = None
    creator: Optional[CreatorInfo] = None


class CharacterListResponse(CamelModel):
    characters: List[CharacterSummary]


class CharacterResponse(CamelModel):
    character: CharacterDetail


# Chat schemas
class ChatHistoryItem(CamelModel):
    role: str
    content: str


class ChatRequest(CamelModel):
    message: Optional[str] = None
    history: Optional[List[ChatHistoryItem]] = None
    character_id: Optional[str] = None
    model: Optional[str] = None
    conversation_id: Optional[str] = None


class ImageRequest(CamelModel):
    messages: List[ChatHistoryItem] = []
    character_name: Optional[str] = None
    conversation_id: Optional[str] = None


class MessageResponse(CamelModel):
    id: int
    role: MessageRole
    content: str
    created_at: datetime


class MessageListResponse(CamelModel):
    messages: List[MessageResponse]
