from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from kirakira.core.config import GoogleOAuthConfig, Settings
from kirakira.main import create_app
from kirakira.models.user import User
from kirakira.services.oauth_service import OAuthError, build_authorization_url, find_or_create_oauth_user

OAUTH_CONFIG = GoogleOAuthConfig(client_id="client-id", client_secret="client-secret")


def test_authorization_url():
    url = build_authorization_url(OAUTH_CONFIG, "http://testserver/api/auth/google/callback", "state-123")
    query = parse_qs(urlparse(url).query)

    assert url.startswith(OAUTH_CONFIG.authorize_url)
    assert query["client_id"] == ["client-id"]
    assert query["state"] == ["state-123"]
    assert query["redirect_uri"] == ["http://testserver/api/auth/google/callback"]


def test_oauth_creates_user_once(db_session):
    user = find_or_create_oauth_user(db_session, "g@example.com", "Google User", "https://example.com/me.png")
    again = find_or_create_oauth_user(db_session, "g@example.com", "Renamed", None)

    assert again.id == user.id
    assert user.password == ""
    assert user.avatar == "https://example.com/me.png"
    assert db_session.query(User).count() == 1


def test_oauth_links_existing_account(db_session):
    existing = User(email="g@example.com", name="Local", password="hash")
    db_session.add(existing)
    db_session.commit()

    assert find_or_create_oauth_user(db_session, "g@example.com", "Google User", None).id == existing.id


def test_oauth_requires_email(db_session):
    with pytest.raises(OAuthError):
        find_or_create_oauth_user(db_session, None, "No Email", None)


def test_google_login_redirects_when_configured(test_db, tmp_path):
    settings = Settings(
        database_url="sqlite://",
        jwt_secret="test-secret",
        environment="test",
        upload_dir=str(tmp_path),
        google_oauth=OAUTH_CONFIG,
    )
    with TestClient(create_app(settings)) as client:
        response = client.get("/api/auth/google", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"].startswith(OAUTH_CONFIG.authorize_url)
    assert "oauth_state" in response.cookies


def test_oauth_user_cannot_password_login(client, db_session):
    find_or_create_oauth_user(db_session, "g@example.com", "Google User", None)
    response = client.post("/api/auth/login", json={"email": "g@example.com", "password": ""})
    assert response.status_code == 401
