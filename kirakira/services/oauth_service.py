import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from kirakira.core.config import GoogleOAuthConfig
from kirakira.models.user import User

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    pass


def new_state() -> str:
    return secrets.token_urlsafe(24)


def build_authorization_url(config: GoogleOAuthConfig, redirect_uri: str, state: str) -> str:
    params = {
        "client_id": config.client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": config.scope,
        "state": state,
        "access_type": "online",
        "prompt": "select_account",
    }
    return f"{config.authorize_url}?{urlencode(params)}"


async def fetch_google_profile(config: GoogleOAuthConfig, code: str, redirect_uri: str) -> Dict[str, Any]:
    """Exchange the authorization code and return the OpenID userinfo payload."""
    async with httpx.AsyncClient() as client:
        token_response = await client.post(
            config.token_url,
            data={
                "code": code,
                "client_id": config.client_id,
                "client_secret": config.client_secret,
                "redirect_uri": redirect_uri,
                "grant_type": "authorization_code",
            },
            timeout=30.0,
        )
        if token_response.status_code != 200:
            raise OAuthError(f"Token exchange failed: {token_response.status_code} - {token_response.text}")

        access_token = token_response.json().get("access_token")
        if not access_token:
            raise OAuthError("Token response did not include an access token")

        profile_response = await client.get(
            config.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=30.0,
        )
        if profile_response.status_code != 200:
            raise OAuthError(f"Userinfo request failed: {profile_response.status_code}")
        return profile_response.json()


def find_or_create_oauth_user(db: Session, email: Optional[str], name: Optional[str], picture: Optional[str]) -> User:
    """Link an OAuth identity to the account with the same email, creating it on first login."""
    if not email:
        raise OAuthError("No email found from Google profile")

    user = db.query(User).filter(User.email == email).first()
    if user:
        return user

    user = User(email=email, name=name or "Unknown", password="", avatar=picture)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.id} from Google sign-in")
    return user
