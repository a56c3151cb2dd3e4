import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from kirakira.core.config import Settings
from kirakira.core.security import (
    AuthContext,
    clear_auth_cookie,
    create_access_token,
    get_auth_context,
    get_settings,
    hash_password,
    set_auth_cookie,
    verify_password,
)
from kirakira.db.database import get_db
from kirakira.models.schemas import AvatarUploadRequest, LoginRequest, NameUpdateRequest, RegisterRequest
from kirakira.models.user import User
from kirakira.services import oauth_service
from kirakira.services.upload_service import InvalidImageData, save_data_url

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"]
)

OAUTH_STATE_COOKIE = "oauth_state"


def _get_user(db: Session, auth: AuthContext) -> User:
    user = db.query(User).filter(User.id == auth.user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="사용자를 찾을 수 없습니다.")
    return user


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Create an email/password account."""
    if not payload.name or not payload.email or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="필수 항목을 모두 입력해주세요.")

    if db.query(User).filter(User.email == payload.email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="이미 가입된 이메일입니다.")

    user = User(name=payload.name, email=payload.email, password=hash_password(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)

    return {"message": "회원가입이 완료되었습니다.", "userId": user.id}


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """Verify credentials and set the auth cookie."""
    user = db.query(User).filter(User.email == payload.email).first() if payload.email else None

    # OAuth-only accounts have no password and cannot log in this way
    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="이메일 또는 비밀번호가 올바르지 않습니다.")

    response = JSONResponse(content={
        "message": "로그인 성공",
        "user": {"id": user.id, "email": user.email, "name": user.name},
    })
    set_auth_cookie(response, create_access_token(user, settings), settings)
    return response


@router.get("/me")
def me(auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    user = _get_user(db, auth)
    return {
        "user": {
            "userId": user.id,
            "email": user.email,
            "name": user.name,
            "nameChanged": user.name_changed,
            "avatar": user.avatar,
        }
    }


@router.post("/logout")
def logout(settings: Settings = Depends(get_settings)):
    response = JSONResponse(content={"success": True})
    clear_auth_cookie(response, settings)
    return response


@router.delete("/account")
def delete_account(
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Delete the caller's account along with their characters, conversations and usage."""
    user = _get_user(db, auth)
    db.delete(user)
    db.commit()
    logger.info(f"Deleted account {auth.user_id}")

    response = JSONResponse(content={"success": True, "message": "회원탈퇴가 완료되었습니다."})
    clear_auth_cookie(response, settings)
    return response


@router.patch("/name")
def change_name(payload: NameUpdateRequest, auth: AuthContext = Depends(get_auth_context), db: Session = Depends(get_db)):
    """Change the display name. Allowed once per account."""
    if not payload.name or not payload.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="이름을 입력해주세요.")

    user = _get_user(db, auth)
    if user.name_changed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="이름은 1회만 변경 가능합니다.")

    user.name = payload.name.strip()
    user.name_changed = True
    db.commit()
    db.refresh(user)

    return {
        "success": True,
        "message": "이름이 변경되었습니다.",
        "user": {"id": user.id, "name": user.name, "email": user.email, "nameChanged": user.name_changed},
    }


@router.post("/avatar")
def upload_avatar(
    payload: AvatarUploadRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not payload.image_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="이미지 데이터가 없습니다.")

    user = _get_user(db, auth)
    try:
        avatar_url = save_data_url(settings.upload_dir, "avatars", f"avatar_{user.id}", payload.image_data)
    except InvalidImageData:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="유효하지 않은 이미지 형식입니다.")
    except OSError:
        logger.exception(f"Failed to store avatar for user {auth.user_id}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="이미지 업로드 중 오류가 발생했습니다.")

    user.avatar = avatar_url
    db.commit()

    return {"success": True, "message": "프로필 사진이 변경되었습니다.", "avatar": avatar_url}


def _oauth_redirect_uri(request: Request, settings: Settings) -> str:
    callback_url = settings.google_oauth.callback_url
    if callback_url.startswith("/"):
        return str(request.base_url).rstrip("/") + callback_url
    return callback_url


def _require_oauth(settings: Settings) -> None:
    if not settings.oauth_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Google OAuth is not configured")


@router.get("/google")
def google_login(request: Request, settings: Settings = Depends(get_settings)):
    """Redirect to the Google consent screen."""
    _require_oauth(settings)

    state = oauth_service.new_state()
    url = oauth_service.build_authorization_url(settings.google_oauth, _oauth_redirect_uri(request, settings), state)

    response = RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(OAUTH_STATE_COOKIE, state, max_age=600, httponly=True, secure=settings.is_production, samesite="lax")
    return response


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str = None,
    state: str = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Finish Google sign-in: link or create the account by email and set the auth cookie."""
    _require_oauth(settings)

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not code or not state or state != expected_state:
        return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)

    try:
        profile = await oauth_service.fetch_google_profile(settings.google_oauth, code, _oauth_redirect_uri(request, settings))
        user = oauth_service.find_or_create_oauth_user(db, profile.get("email"), profile.get("name"), profile.get("picture"))
    except oauth_service.OAuthError as e:
        logger.error(f"Google sign-in failed: {str(e)}")
        return RedirectResponse(url="/", status_code=status.HTTP_302_FOUND)

    response = RedirectResponse(url=settings.frontend_url or "/", status_code=status.HTTP_302_FOUND)
    response.delete_cookie(OAUTH_STATE_COOKIE)
    set_auth_cookie(response, create_access_token(user, settings), settings)
    return response
