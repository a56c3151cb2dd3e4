import logging
import re

from fastapi import APIRouter, Depends, HTTPException, status

from kirakira.core.config import Settings
from kirakira.core.security import AuthContext, get_auth_context, get_settings
from kirakira.models.schemas import UploadRequest
from kirakira.services.upload_service import InvalidImageData, save_data_url

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/upload",
    tags=["upload"]
)


@router.post("")
def upload_image(
    payload: UploadRequest,
    auth: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_settings),
):
    """Store a base64 data-URL image. ``type == "profile"`` goes to avatars, anything else to characters."""
    if not payload.file:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="이미지 데이터가 없습니다.")

    upload_type = payload.type if payload.type and re.fullmatch(r"[A-Za-z0-9_-]+", payload.type) else "character"
    directory = "avatars" if upload_type == "profile" else "characters"
    try:
        url = save_data_url(settings.upload_dir, directory, upload_type, payload.file)
    except InvalidImageData:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="유효하지 않은 이미지 형식입니다.")
    except OSError:
        logger.exception(f"Failed to store upload for user {auth.user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="이미지 업로드 중 오류가 발생했습니다.")

    return {"success": True, "url": url}
