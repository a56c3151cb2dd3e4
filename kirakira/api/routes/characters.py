import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from kirakira.core.security import AuthContext, get_auth_context, get_optional_auth_context
from kirakira.db.database import get_db
from kirakira.models.character import MAX_CHARACTERS_PER_USER, Character, Visibility
from kirakira.models.schemas import (
    CharacterDetail,
    CharacterListResponse,
    CharacterPayload,
    CharacterResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/characters",
    tags=["characters"]
)

PUBLIC_LIST_LIMIT = 50


def _dump_list(value) -> Optional[str]:
    return json.dumps(value, ensure_ascii=False) if value else None


def _apply_payload(character: Character, payload: CharacterPayload) -> None:
    character.name = payload.name
    character.description = payload.description
    character.personality = payload.personality or None
    character.greeting = payload.greeting
    character.greetings = _dump_list(payload.greetings)
    character.secret = payload.secret or None
    character.example_dialogs = _dump_list(payload.example_dialogs)
    character.visibility = payload.visibility or Visibility.PRIVATE
    character.profile_image = payload.profile_image or None
    character.album_images = _dump_list(payload.album_images)


def _require_fields(payload: CharacterPayload) -> None:
    if not payload.name or not payload.description or not payload.greeting:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="필수 항목을 모두 입력해주세요.")


def _get_owned_character(db: Session, character_id: str, auth: AuthContext) -> Character:
    character = db.query(Character).filter(Character.id == character_id).first()
    if not character:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="캐릭터를 찾을 수 없습니다.")
    if character.creator_id != auth.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="권한이 없습니다.")
    return character


def _to_detail(character: Character, viewer_id: Optional[str]) -> CharacterDetail:
    detail = CharacterDetail.model_validate(character)
    if character.creator_id != viewer_id:
        # The secret is for the model, not for other players
        detail = detail.model_copy(update={"secret": None})
    return detail


@router.get("/public", response_model=CharacterListResponse)
def list_public_characters(db: Session = Depends(get_db)):
    characters = db.query(Character).filter(
        Character.visibility == Visibility.PUBLIC
    ).order_by(Character.created_at.desc()).limit(PUBLIC_LIST_LIMIT).all()
    return {"characters": characters}


@router.get("/my", response_model=CharacterListResponse)
def list_my_characters(auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    characters = db.query(Character).filter(
        Character.creator_id == auth.user_id
    ).order_by(Character.created_at.desc()).all()
    return {"characters": characters}


@router.get("/{character_id}", response_model=CharacterResponse)
def get_character(
    character_id: str,
    auth: Optional[AuthContext] = Depends(get_optional_auth_context),
    db: Session = Depends(get_db),
):
    """Get one character. Private characters are only visible to their creator."""
    viewer_id = auth.user_id if auth else None
    character = db.query(Character).filter(Character.id == character_id).first()
    if not character or not character.is_visible_to(viewer_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="캐릭터를 찾을 수 없습니다.")
    return {"character": _to_detail(character, viewer_id)}


@router.post("", response_model=CharacterResponse, status_code=status.HTTP_201_CREATED)
def create_character(payload: CharacterPayload, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    _require_fields(payload)

    owned = db.query(func.count(Character.id)).filter(Character.creator_id == auth.user_id).scalar() or 0
    if owned >= MAX_CHARACTERS_PER_USER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"최대 {MAX_CHARACTERS_PER_USER}개까지만 캐릭터를 만들 수 있습니다.",
        )

    character = Character(creator_id=auth.user_id)
    _apply_payload(character, payload)
    db.add(character)
    db.commit()
    db.refresh(character)

    return {"character": _to_detail(character, auth.user_id)}


@router.put("/{character_id}", response_model=CharacterResponse)
def update_character(
    character_id: str,
    payload: CharacterPayload,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    character = _get_owned_character(db, character_id, auth)
    _require_fields(payload)

    _apply_payload(character, payload)
    db.commit()
    db.refresh(character)

    return {"character": _to_detail(character, auth.user_id)}


@router.delete("/{character_id}")
def delete_character(character_id: str, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Delete a character together with every conversation held with it."""
    character = _get_owned_character(db, character_id, auth)
    db.delete(character)
    db.commit()
    logger.info(f"Deleted character {character_id}")

    return {"success": True, "message": "캐릭터가 삭제되었습니다."}
