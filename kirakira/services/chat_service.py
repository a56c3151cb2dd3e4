"""
Chat turn orchestration.

A turn streams the model's reply to the client as Server-Sent Events. The
upstream stream is read by a producer task that feeds a bounded queue; the
response body drains the queue, so a failing or disconnecting side ends the
turn without an exception crossing the streaming boundary. Usage and both
messages are committed together once the reply is complete.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from kirakira.core.timezone import utcnow
from kirakira.models.character import Character
from kirakira.models.conversation import Conversation, Message, MessageRole
from kirakira.models.usage import UsageRecord
from kirakira.services.model_provider import model_provider

logger = logging.getLogger(__name__)

STREAM_QUEUE_SIZE = 64
HISTORY_LIMIT = 20

_STREAM_END = object()


class StreamFailed:
    """Queue item signalling that the upstream stream raised."""

    def __init__(self, error: BaseException):
        self.error = error


@dataclass
class ChatTurn:
    user_id: str
    conversation_id: str
    model: str
    message: str
    system_prompt: str
    history: List[Dict[str, str]] = field(default_factory=list)


def sse_frame(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def count_conversations(db: Session, user_id: str) -> int:
    return db.query(func.count(Conversation.id)).filter(Conversation.user_id == user_id).scalar() or 0


def get_owned_conversation(db: Session, conversation_id: str, user_id: str) -> Optional[Conversation]:
    return db.query(Conversation).filter(
        Conversation.id == conversation_id,
        Conversation.user_id == user_id,
    ).first()


def start_conversation(db: Session, user_id: str, character: Character) -> Conversation:
    """Create the conversation for a first message and count it against the character."""
    conversation = Conversation(
        user_id=user_id,
        character_id=character.id,
        title=f"{character.name}와의 대화",
    )
    db.add(conversation)
    character.chat_count = (character.chat_count or 0) + 1
    db.commit()
    db.refresh(conversation)
    logger.info(f"Created conversation {conversation.id} for user {user_id} with character {character.id}")
    return conversation


def load_history(db: Session, conversation_id: str, limit: int = HISTORY_LIMIT) -> List[Dict[str, str]]:
    """Most recent stored turns of a conversation, oldest first."""
    messages = db.query(Message).filter(
        Message.conversation_id == conversation_id
    ).order_by(Message.id.desc()).limit(limit).all()
    return [{"role": m.role.value, "content": m.content} for m in reversed(messages)]


def persist_chat_turn(session_factory, turn: ChatTurn, response_text: str) -> None:
    """Record usage and both messages in a single transaction."""
    db = session_factory()
    try:
        db.add(UsageRecord(user_id=turn.user_id, model=turn.model))
        db.add(Message(conversation_id=turn.conversation_id, role=MessageRole.USER, content=turn.message))
        db.add(Message(conversation_id=turn.conversation_id, role=MessageRole.ASSISTANT, content=response_text))
        db.query(Conversation).filter(Conversation.id == turn.conversation_id).update(
            {Conversation.updated_at: utcnow()}, synchronize_session=False
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


async def _produce_chunks(turn: ChatTurn, queue: asyncio.Queue) -> None:
    try:
        async with model_provider.stream_chat(
            turn.history, turn.message, system_prompt=turn.system_prompt, model=turn.model
        ) as stream:
            async for text in stream:
                if text:
                    await queue.put(text)
    except Exception as e:
        await queue.put(StreamFailed(e))
    else:
        await queue.put(_STREAM_END)


async def relay_chat_turn(turn: ChatTurn, session_factory) -> AsyncIterator[str]:
    """
    Yield SSE frames for one chat turn.

    Emits ``{"text": chunk}`` per model chunk, then
    ``{"done": true, "conversationId": ...}``, then commits the turn. If the
    model stream fails, the frames stop early and nothing is recorded.
    """
    queue: asyncio.Queue = asyncio.Queue(maxsize=STREAM_QUEUE_SIZE)
    producer = asyncio.create_task(_produce_chunks(turn, queue))
    chunks = []
    try:
        while True:
            item = await queue.get()
            if item is _STREAM_END:
                break
            if isinstance(item, StreamFailed):
                logger.error(f"Model stream failed for conversation {turn.conversation_id}: {str(item.error)}")
                return
            chunks.append(item)
            yield sse_frame({"text": item})

        yield sse_frame({"done": True, "conversationId": turn.conversation_id})

        try:
            persist_chat_turn(session_factory, turn, "".join(chunks))
        except Exception:
            logger.exception(f"Failed to record chat turn for conversation {turn.conversation_id}")
    finally:
        # Client went away or the stream failed
        if not producer.done():
            producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)
