import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from kirakira.core.config import Settings
from kirakira.core.security import AuthContext, get_auth_context, get_settings
from kirakira.db.database import get_db, get_session_factory
from kirakira.models.character import Character
from kirakira.models.conversation import MAX_CONVERSATIONS_PER_USER, Message, MessageRole
from kirakira.models.schemas import ChatRequest, ImageRequest, MessageListResponse
from kirakira.services import chat_service
from kirakira.services.character_prompt import build_system_prompt
from kirakira.services.image_service import image_service, scene_message
from kirakira.services.usage_service import DAILY_LIMITS, has_remaining_quota, select_model

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/chat",
    tags=["chat"]
)


@router.post("")
async def chat(
    payload: ChatRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
):
    """
    Run one chat turn and stream the character's reply as Server-Sent Events.

    Frames are ``data: {"text": ...}`` per chunk followed by
    ``data: {"done": true, "conversationId": ...}``. Sending no
    ``conversationId`` starts a new conversation, whose id arrives in the
    final frame.

    Errors before streaming starts are plain JSON:
    - 400: missing fields or the conversation limit is reached
    - 404: unknown character or a conversation the caller does not own
    - 429: the daily limit for the selected model is used up
      (``usageLimitExceeded: true``)
    """
    if not payload.message or not payload.character_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="메시지와 캐릭터를 입력해주세요.")

    model = select_model(payload.model)

    try:
        if not has_remaining_quota(db, auth.user_id, model):
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": "Daily limit exceeded",
                    "usageLimitExceeded": True,
                    "message": f"일일 사용량을 초과했습니다. ({model}: {DAILY_LIMITS[model]}회)",
                },
            )

        character = db.query(Character).filter(Character.id == payload.character_id).first()
        if not character or not character.is_visible_to(auth.user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Character not found")

        if payload.conversation_id:
            conversation = chat_service.get_owned_conversation(db, payload.conversation_id, auth.user_id)
            if not conversation:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
        else:
            if chat_service.count_conversations(db, auth.user_id) >= MAX_CONVERSATIONS_PER_USER:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"최대 {MAX_CONVERSATIONS_PER_USER}개까지만 대화를 생성할 수 있습니다.",
                )
            conversation = chat_service.start_conversation(db, auth.user_id, character)

        if payload.history:
            history = [item.model_dump() for item in payload.history]
        elif payload.conversation_id:
            history = chat_service.load_history(db, conversation.id)
        else:
            history = []

        turn = chat_service.ChatTurn(
            user_id=auth.user_id,
            conversation_id=conversation.id,
            model=model,
            message=payload.message,
            system_prompt=build_system_prompt(character, auth.name),
            history=history,
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception(f"Chat request failed for user {auth.user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error")

    return StreamingResponse(
        chat_service.relay_chat_turn(turn, session_factory),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/image")
async def generate_scene_image(
    payload: ImageRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Illustrate the latest moment of a conversation and optionally post it into the chat."""
    description = None
    personality = None
    conversation = None
    if payload.conversation_id:
        conversation = chat_service.get_owned_conversation(db, payload.conversation_id, auth.user_id)
        if not conversation:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
        description = conversation.character.description
        personality = conversation.character.personality

    try:
        image_url = await image_service.create_scene_image(
            settings.upload_dir,
            payload.character_name or "Character",
            [item.model_dump() for item in payload.messages],
            description=description,
            personality=personality,
        )
    except Exception:
        logger.exception(f"Image generation failed for user {auth.user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate image")

    if conversation:
        db.add(Message(conversation_id=conversation.id, role=MessageRole.ASSISTANT, content=scene_message(image_url)))
        db.commit()

    return {"imageUrl": image_url}


@router.get("/{conversation_id}/messages", response_model=MessageListResponse)
def list_messages(conversation_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    conversation = chat_service.get_owned_conversation(db, conversation_id, auth.user_id)
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")

    messages = db.query(Message).filter(Message.conversation_id == conversation.id).order_by(Message.id).all()
    return {"messages": messages}
