import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from kirakira.core.security import AuthContext, get_auth_context
from kirakira.core.timezone import utcnow
from kirakira.db.database import get_db
from kirakira.models.character import Character
from kirakira.models.conversation import CONVERSATION_TTL, MAX_CONVERSATIONS_PER_USER, Conversation, Message
from kirakira.services.chat_service import count_conversations

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/conversations",
    tags=["conversations"]
)


def remaining_time(expires_at, now):
    """Hours and minutes left before a conversation's display expiry."""
    remaining = expires_at - now
    if remaining <= timedelta(0):
        return {"hours": 0, "minutes": 0, "expired": True}
    total_minutes = int(remaining.total_seconds() // 60)
    return {"hours": total_minutes // 60, "minutes": total_minutes % 60, "expired": False}


@router.get("")
def list_conversations(auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """The caller's conversations, most recently active first."""
    rows = db.query(Conversation, Character, func.count(Message.id)).join(
        Character, Conversation.character_id == Character.id
    ).outerjoin(
        Message, Message.conversation_id == Conversation.id
    ).filter(
        Conversation.user_id == auth.user_id
    ).group_by(Conversation.id, Character.id).order_by(Conversation.updated_at.desc()).all()

    now = utcnow()
    conversations = []
    for conversation, character, message_count in rows:
        conversations.append({
            "id": conversation.id,
            "title": conversation.title or f"{character.name}와의 대화",
            "character": {
                "id": character.id,
                "name": character.name,
                "profileImage": character.profile_image,
            },
            "messageCount": message_count,
            "createdAt": conversation.created_at.isoformat(),
            "updatedAt": conversation.updated_at.isoformat(),
            "remainingTime": remaining_time(conversation.expires_at, now),
        })

    return {"conversations": conversations}


@router.get("/count")
def conversation_count(auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    return {"count": count_conversations(db, auth.user_id), "limit": MAX_CONVERSATIONS_PER_USER}


@router.delete("/cleanup/expired")
def cleanup_expired_conversations(auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Delete every conversation older than the retention window. Meant for cron or manual use."""
    cutoff = utcnow() - CONVERSATION_TTL
    expired = db.query(Conversation).filter(Conversation.created_at < cutoff).all()
    for conversation in expired:
        db.delete(conversation)
    db.commit()

    logger.info(f"Cleaned up {len(expired)} expired conversations (requested by {auth.user_id})")
    return {"success": True, "deleted": len(expired)}


@router.delete("/{conversation_id}")
def delete_conversation(conversation_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    if conversation.user_id != auth.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")

    db.delete(conversation)
    db.commit()

    return {"success": True, "message": "Conversation deleted"}
